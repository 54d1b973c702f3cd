"""Language-generation client used by every plan stage.

Updates:
    v0.2.0 - 2025-11-09 - Return token usage, map provider failures to generation errors,
        and leave retries to the pipeline call policy.
    v0.1.0 - 2025-11-09 - Added Google-style docstrings and update metadata.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from os import environ
from typing import Any, Callable, Dict, List, Mapping, Protocol, Sequence, TYPE_CHECKING, cast

from ..services.config_service import ConfigService, WorkflowModelConfig
from .errors import (
    GenerationRateLimitError,
    GenerationTimeoutError,
    GenerationTransportError,
)

try:
    import litellm
    from litellm import completion as _litellm_completion  # pyright: ignore[reportUnknownVariableType]
    from litellm.exceptions import RateLimitError, Timeout
except ImportError as exc:  # pragma: no cover - guidance for missing dependency
    raise RuntimeError(
        "litellm is required for LLMGateway. Install via `pip install litellm`."
    ) from exc
else:
    litellm.drop_params = True

if TYPE_CHECKING:

    class CompletionCallable(Protocol):
        def __call__(
            self,
            *,
            messages: List[Dict[str, str]],
            **kwargs: Any,
        ) -> Dict[str, Any]:
            ...
else:
    CompletionCallable = Callable[..., Any]

completion = _litellm_completion

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class GenerationOptions:
    """Per-call parameters.

    ``stage`` selects the model configuration; ``temperature`` and
    ``max_tokens`` override it when set.
    """

    stage: str = "plan_sections"
    temperature: float | None = None
    max_tokens: int | None = None
    response_format: str = "text"
    timeout: float | None = None


@dataclass(slots=True, frozen=True)
class GenerationResult:
    text: str
    tokens_used: int = 0


class LanguageGenerationService(Protocol):
    """Capability every language-generation provider must offer."""

    def generate(
        self,
        system_instruction: str,
        user_prompt: str,
        options: GenerationOptions,
    ) -> GenerationResult:
        ...


class LLMGateway:
    """LiteLLM-backed language-generation client. Never retries."""

    DEFAULT_TIMEOUT_SECONDS = 60

    def __init__(self, config_service: ConfigService) -> None:
        """Store configuration dependencies for LLM dispatch.

        Args:
            config_service (ConfigService): Loader providing stage model configuration.
        """

        self._config_service = config_service

    def generate(
        self,
        system_instruction: str,
        user_prompt: str,
        options: GenerationOptions | None = None,
    ) -> GenerationResult:
        """Run one completion and return its text and token usage.

        Args:
            system_instruction (str): System guidance passed to the model.
            user_prompt (str): User-facing prompt content.
            options (GenerationOptions | None): Stage, sampling, format, and timeout.

        Returns:
            GenerationResult: Generated text and total tokens reported by the provider.

        Raises:
            GenerationTimeoutError: If the provider did not answer in time.
            GenerationRateLimitError: If the provider rejected the call for rate limits.
            GenerationTransportError: For every other provider or response failure.
        """

        options = options or GenerationOptions()
        config = self._config_service.get_workflow_model_config(options.stage)
        messages = self._build_messages(user_prompt, system_instruction)
        params = self._build_params(config, options)

        completion_fn = cast(CompletionCallable, completion)
        logger.debug(
            "Invoking stage=%s model=%s format=%s",
            options.stage,
            params.get("model"),
            options.response_format,
        )
        try:
            raw_response = completion_fn(messages=messages, **params)
        except (Timeout, TimeoutError) as exc:
            raise GenerationTimeoutError(
                f"LLM call for stage '{options.stage}' timed out: {exc}"
            ) from exc
        except RateLimitError as exc:
            raise GenerationRateLimitError(
                f"LLM call for stage '{options.stage}' was rate limited: {exc}"
            ) from exc
        except Exception as exc:  # network/credential issues
            raise GenerationTransportError(
                f"LLM call for stage '{options.stage}' failed: {exc}"
            ) from exc

        response = self._normalise_response(raw_response)
        return GenerationResult(
            text=self._extract_text_content(response),
            tokens_used=self._extract_tokens(response),
        )

    def _build_messages(
        self, prompt: str, system_prompt: str | None
    ) -> List[Dict[str, str]]:
        messages: List[Dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})
        return messages

    def _build_params(
        self, config: WorkflowModelConfig, options: GenerationOptions
    ) -> Dict[str, Any]:
        """Build the request parameters merged with call options and provider settings.

        Args:
            config (WorkflowModelConfig): Stage-specific configuration values.
            options (GenerationOptions): Parameters supplied by the caller.

        Returns:
            dict[str, Any]: Completed parameter payload for the provider call.

        Raises:
            GenerationTransportError: If a configured provider is missing its API key.
        """

        params: Dict[str, Any] = {"model": config.model}
        temperature = options.temperature if options.temperature is not None else config.temperature
        if temperature is not None:
            params["temperature"] = temperature
        max_tokens = options.max_tokens if options.max_tokens is not None else config.max_tokens
        if max_tokens is not None:
            params["max_tokens"] = max_tokens
        if options.response_format == "json":
            params["response_format"] = {"type": "json_object"}
        params["timeout"] = options.timeout or self.DEFAULT_TIMEOUT_SECONDS

        provider_name = config.provider
        if provider_name:
            provider_config = dict(self._config_service.providers.get(provider_name, {}))
            api_key_env = provider_config.pop("api_key_env", None)
            litellm_provider = provider_config.pop("litellm_provider", None)
            params.update(provider_config)
            if api_key_env:
                api_key = environ.get(api_key_env)
                if not api_key:
                    message = f"Environment variable '{api_key_env}' required for provider '{provider_name}'."
                    logger.error(message)
                    raise GenerationTransportError(message)
                params.setdefault("api_key", api_key)
            params.setdefault("custom_llm_provider", litellm_provider or provider_name)

        return params

    def _extract_text_content(self, response: Mapping[str, Any]) -> str:
        choices = response.get("choices")
        if not isinstance(choices, Sequence) or not choices:
            raise GenerationTransportError("LLM response did not include any choices.")
        first_choice = cast(Sequence[Mapping[str, object]], choices)[0]
        message_value: object | None = first_choice.get("message")
        if not isinstance(message_value, dict):
            raise GenerationTransportError("LLM response missing message object.")
        content = cast(Mapping[str, Any], message_value).get("content")
        if content is None:
            return ""
        if not isinstance(content, str):
            raise GenerationTransportError("LLM response content is not textual.")
        return content

    @staticmethod
    def _extract_tokens(response: Mapping[str, Any]) -> int:
        usage = response.get("usage")
        if not isinstance(usage, Mapping):
            return 0
        total = usage.get("total_tokens")
        if isinstance(total, (int, float)) and total > 0:
            return int(total)
        prompt_tokens = usage.get("prompt_tokens") or 0
        completion_tokens = usage.get("completion_tokens") or 0
        if isinstance(prompt_tokens, (int, float)) and isinstance(completion_tokens, (int, float)):
            return int(prompt_tokens + completion_tokens)
        return 0

    def _normalise_response(self, raw_response: Any) -> Dict[str, Any]:
        if isinstance(raw_response, dict):
            return cast(Dict[str, Any], raw_response)
        model_dump = getattr(raw_response, "model_dump", None)
        if callable(model_dump):
            candidate = model_dump()
            if isinstance(candidate, dict):
                return cast(Dict[str, Any], candidate)
        dict_method = getattr(raw_response, "dict", None)
        if callable(dict_method):
            candidate = dict_method()
            if isinstance(candidate, dict):
                return cast(Dict[str, Any], candidate)
        raise GenerationTransportError(
            f"Unexpected LLM response type: {type(raw_response).__name__}"
        )
