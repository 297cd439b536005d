"""Gemini completion provider built on the google-genai SDK."""

from __future__ import annotations

import logging
from typing import Any, Callable

from google import genai
from google.genai import types

from ..errors import EmptyResponseError, ProviderError
from ..models.credential import Credential
from ..utils.config import Config
from .base import CompletionProvider, CompletionRequest, CompletionResponse, classify_error, estimate_tokens

logger = logging.getLogger(__name__)


class GeminiClient(CompletionProvider):
    """Runs completions against the Gemini API, one SDK client per API key."""

    def __init__(self, config: Config, client_factory: Callable[[str], Any] | None = None):
        self.config = config
        self._client_factory = client_factory or (lambda api_key: genai.Client(api_key=api_key))
        self._clients: dict[str, Any] = {}

    def _client_for(self, credential: Credential) -> Any:
        client = self._clients.get(credential.secret)
        if client is None:
            client = self._client_factory(credential.secret)
            self._clients[credential.secret] = client
        return client

    @staticmethod
    def _build_contents(turns: list[dict[str, Any]]) -> list[types.Content]:
        contents: list[types.Content] = []
        for turn in turns:
            role = "model" if turn["role"] == "model" else "user"
            parts = [types.Part.from_text(text=part.get("text", "")) for part in turn["parts"]]
            contents.append(types.Content(role=role, parts=parts))
        return contents

    def _build_config(self, request: CompletionRequest) -> types.GenerateContentConfig:
        options: dict[str, Any] = {}
        if request.system_instruction:
            options["system_instruction"] = request.system_instruction
        if request.max_output_tokens is not None:
            options["max_output_tokens"] = request.max_output_tokens
        if request.temperature is not None:
            options["temperature"] = request.temperature
        if request.thinking_budget is not None and self.config.model_supports_thinking(request.model):
            options["thinking_config"] = types.ThinkingConfig(thinking_budget=request.thinking_budget)
        return types.GenerateContentConfig(**options)

    async def complete(self, request: CompletionRequest, credential: Credential) -> CompletionResponse:
        model_id = self.config.get_model_id(request.model)
        client = self._client_for(credential)
        logger.debug(f"Gemini request: model={model_id} turns={len(request.turns)} key={credential.id}")

        try:
            response = await client.aio.models.generate_content(
                model=model_id,
                contents=self._build_contents(request.turns),
                config=self._build_config(request),
            )
            text = response.text
        except ProviderError:
            raise
        except Exception as e:
            raise classify_error(e) from e

        if not text or not text.strip():
            raise EmptyResponseError("The model returned an empty response.")

        prompt_text = (request.system_instruction or "") + "".join(
            part.get("text", "") for turn in request.turns for part in turn["parts"]
        )
        return CompletionResponse(
            text=text,
            token_estimate=estimate_tokens(prompt_text + text),
            model=model_id,
            credential_id=credential.id,
        )
