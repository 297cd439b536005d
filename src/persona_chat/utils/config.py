import logging
import os
from pathlib import Path
from typing import Any, Dict

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from rich.console import Console

DEFAULT_PERSONA_NAME = "AI Friend"
DEFAULT_PERSONA_INSTRUCTIONS = "Friendly and helpful."

MODEL_FLASH = "gemini-flash"
MODEL_PRO = "gemini-pro"

# Used when models.yaml is missing or unreadable
BUILTIN_MODELS: Dict[str, Dict[str, Any]] = {
    MODEL_FLASH: {
        "model_id": "gemini-2.5-flash",
        "context_window": 1048576,
        "supports_thinking": False,
    },
    MODEL_PRO: {
        "model_id": "gemini-2.5-pro",
        "context_window": 1048576,
        "supports_thinking": True,
    },
}

logger = logging.getLogger(__name__)
console = Console()


def get_default_config_dir() -> Path:
    xdg_config_home = os.environ.get("XDG_CONFIG_HOME", os.path.expanduser("~/.config"))
    return Path(xdg_config_home) / "persona-chat"


def get_default_data_dir() -> Path:
    xdg_data_home = os.environ.get("XDG_DATA_HOME", os.path.expanduser("~/.local/share"))
    return Path(xdg_data_home) / "persona-chat"


def get_default_models_yaml_path() -> Path:
    env_path = os.environ.get("PERSONA_CHAT_MODELS_CONFIG_PATH")
    if env_path:
        return Path(env_path).expanduser().resolve()
    return get_default_config_dir() / "models.yaml"


def get_dotenv_path() -> Path:
    env_override = os.environ.get("PERSONA_CHAT_ENV_FILE")
    if env_override:
        return Path(env_override).expanduser().resolve()

    cwd_env = Path.cwd() / ".env"
    if cwd_env.is_file():
        return cwd_env

    return get_default_config_dir() / ".env"


DEFAULT_MODELS_YAML = get_default_models_yaml_path()
DOTENV_PATH = get_dotenv_path()


class Config(BaseSettings):
    # --- Provider Settings --- #
    GEMINI_API_KEY: str = Field(default="", description="Server-side Gemini key used when no client credentials are stored")
    MODELS_CONFIG_PATH: str = Field(default=str(DEFAULT_MODELS_YAML), description="Path to the models YAML definition file")
    DEFAULT_MODEL: str = Field(default=MODEL_PRO, description="Model selector for new conversations")

    # --- Storage Settings --- #
    DATABASE_URL: str = Field(
        default=f"sqlite:///{get_default_data_dir() / 'chat.db'}",
        description="SQLAlchemy URL for the key-value store",
    )
    MAX_STORED_CONVERSATIONS: int = Field(default=100, description="Oldest conversations beyond this count are pruned")

    # --- Conversation Settings --- #
    DEFAULT_TITLE: str = Field(default="New Chat", description="Title for conversations without a user message")
    TITLE_MAX_CHARS: int = Field(default=30, description="Characters of the first user message kept in derived titles")
    DEFAULT_PERSONA_NAME: str = Field(default=DEFAULT_PERSONA_NAME)
    DEFAULT_PERSONA_INSTRUCTIONS: str = Field(default=DEFAULT_PERSONA_INSTRUCTIONS)
    HISTORY_MAX_TURNS: int = Field(default=10, description="User+assistant turn pairs sent verbatim on each request")
    FAILED_REPLY_MESSAGE: str = Field(
        default="Sorry, something went wrong. Please try again.",
        description="Assistant message appended when a send fails",
    )

    # --- History Summarization Settings --- #
    SUMMARIZATION_THRESHOLD: int = Field(default=20, description="Unsummarized messages that trigger background summarization")
    SUMMARIZATION_MODEL: str = Field(default=MODEL_FLASH, description="Model selector used for summaries")
    SUMMARIZATION_MAX_OUTPUT_TOKENS: int = Field(default=2048)
    SUMMARIZATION_TEMPERATURE: float = Field(default=0.7)

    # --- Credential Rotation Settings --- #
    KEY_COOLDOWN_SECONDS: int = Field(default=3600, description="Seconds a quota-exceeded key is skipped")
    RETRY_MAX_ATTEMPTS: int = Field(default=3, description="Attempts for transient provider errors")
    RETRY_BASE_DELAY: float = Field(default=1.0, description="First backoff delay in seconds, doubled per attempt")

    # --- Service Settings --- #
    SERVICE_HOST: str = Field(default="127.0.0.1")
    SERVICE_PORT: int = Field(default=8650)

    # --- UI/Interaction Settings --- #
    VERBOSE: bool = Field(default=False, description="Verbose mode for debugging")
    DEBUG: bool = Field(default=False, description="Enable raw debug logging output")

    defined_models: Dict[str, Any] = Field(default_factory=dict, exclude=True)

    model_config = SettingsConfigDict(
        env_prefix="PERSONA_CHAT_",
        env_file=DOTENV_PATH,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra='ignore'
    )

    def __init__(self, **values: Any):
        if 'MODELS_CONFIG_PATH' in values:
            values['MODELS_CONFIG_PATH'] = str(Path(values['MODELS_CONFIG_PATH']).expanduser().resolve())
        super().__init__(**values)
        self._load_models_config()

    def _load_models_config(self):
        self.defined_models = {"models": {k: dict(v) for k, v in BUILTIN_MODELS.items()}}
        config_path = Path(self.MODELS_CONFIG_PATH)
        if not config_path.is_file():
            logger.debug(f"Models configuration not found at {config_path}, using built-in definitions")
            return

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                loaded_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            console.print(f"[bold red]Error parsing YAML file {config_path}:[/bold red] {e}")
            return
        except OSError as e:
            console.print(f"[bold red]Error loading models config {config_path}:[/bold red] {e}")
            return

        models = loaded_data.get("models") if isinstance(loaded_data, dict) else None
        if not isinstance(models, dict):
            console.print(f"[bold red]Warning:[/bold red] Invalid format in {config_path}. Missing top-level 'models' dictionary. Using built-in definitions.")
            return
        for selector, model_info in models.items():
            if isinstance(model_info, dict) and model_info.get("model_id"):
                self.defined_models["models"][selector] = model_info

    def get_model_options(self) -> list[str]:
        return sorted(self.defined_models.get("models", {}).keys())

    def get_model_definition(self, selector: str | None = None) -> Dict[str, Any]:
        models = self.defined_models.get("models", {})
        return models.get(selector or self.DEFAULT_MODEL) or models.get(self.DEFAULT_MODEL, {})

    def get_model_id(self, selector: str | None = None) -> str:
        """Resolve a model selector (e.g. 'gemini-flash') to the provider's model id."""
        model_def = self.get_model_definition(selector)
        return str(model_def.get("model_id") or selector or self.DEFAULT_MODEL)

    def model_supports_thinking(self, selector: str | None = None) -> bool:
        return bool(self.get_model_definition(selector).get("supports_thinking", False))


config = Config()
