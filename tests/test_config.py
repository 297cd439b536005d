"""Tests for configuration and logging setup."""

from __future__ import annotations

import logging

from persona_chat.shared.logging import LogConfig, set_request_id
from persona_chat.utils.config import Config


def test_builtin_models_without_yaml(tmp_path) -> None:
    config = Config(MODELS_CONFIG_PATH=str(tmp_path / "absent.yaml"))

    assert config.get_model_options() == ["gemini-flash", "gemini-pro"]
    assert config.get_model_id("gemini-flash") == "gemini-2.5-flash"
    assert config.get_model_id("gemini-pro") == "gemini-2.5-pro"
    assert config.model_supports_thinking("gemini-pro") is True
    assert config.model_supports_thinking("gemini-flash") is False


def test_yaml_models_extend_builtins(tmp_path) -> None:
    models_yaml = tmp_path / "models.yaml"
    models_yaml.write_text(
        "models:\n"
        "  gemini-lite:\n"
        "    model_id: gemini-2.5-flash-lite\n"
        "    context_window: 1000000\n"
        "  broken: {}\n",
        encoding="utf-8",
    )
    config = Config(MODELS_CONFIG_PATH=str(models_yaml))

    assert "gemini-lite" in config.get_model_options()
    assert "broken" not in config.get_model_options()
    assert config.get_model_id("gemini-lite") == "gemini-2.5-flash-lite"


def test_malformed_yaml_falls_back_to_builtins(tmp_path) -> None:
    models_yaml = tmp_path / "models.yaml"
    models_yaml.write_text("models: [unclosed", encoding="utf-8")

    config = Config(MODELS_CONFIG_PATH=str(models_yaml))
    assert config.get_model_options() == ["gemini-flash", "gemini-pro"]


def test_env_prefix(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("PERSONA_CHAT_SUMMARIZATION_THRESHOLD", "40")
    monkeypatch.setenv("PERSONA_CHAT_GEMINI_API_KEY", "env-key")

    config = Config(MODELS_CONFIG_PATH=str(tmp_path / "absent.yaml"))
    assert config.SUMMARIZATION_THRESHOLD == 40
    assert config.GEMINI_API_KEY == "env-key"


def test_log_config_levels(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("PERSONA_CHAT_LOG_DIR", str(tmp_path / "logs"))
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    try:
        LogConfig.configure(verbose=True)
        assert logging.getLogger("persona_chat").level == logging.INFO
        assert logging.getLogger("httpx").level == logging.WARNING

        LogConfig.configure(debug=True)
        assert root.level == logging.DEBUG
        assert (tmp_path / "logs" / "persona-chat.debug.log").exists()
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
        logging.getLogger("persona_chat").setLevel(logging.NOTSET)
        set_request_id(None)
