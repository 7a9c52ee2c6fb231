"""JSON-only chat oracle over the OpenAI API (OpenAI first, OpenRouter as fallback)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import openai
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from newscurator.config import CuratorConfig
from newscurator.errors import OracleError, OracleResponseError
from newscurator.llm.json_repair import parse_json_object


logger = logging.getLogger(__name__)

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"

_TRANSIENT_ERRORS = (
    openai.RateLimitError,
    openai.APIConnectionError,
    openai.APITimeoutError,
    openai.InternalServerError,
)


@dataclass(frozen=True)
class OracleProvider:
    name: str
    client: Any
    model: str
    json_mode: bool = True


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(min=1, max=8),
    retry=retry_if_exception_type(_TRANSIENT_ERRORS),
    reraise=True,
)
def _chat(provider: OracleProvider, messages: List[Dict[str, str]], *, temperature: float, max_tokens: int) -> str:
    kwargs: Dict[str, Any] = {
        "model": provider.model,
        "messages": messages,
        "temperature": temperature,
        "max_tokens": max_tokens,
    }
    # response_format is only reliable on the first-party endpoint
    if provider.json_mode:
        kwargs["response_format"] = {"type": "json_object"}
    resp = provider.client.chat.completions.create(**kwargs)
    choices = getattr(resp, "choices", None) or []
    if not choices:
        return ""
    return choices[0].message.content or ""


class JSONOracle:
    """Text in, JSON object out.

    Transport failures are retried per provider, then the next provider is tried.
    A reply that is not a JSON object raises OracleResponseError straight away.
    """

    def __init__(self, providers: Sequence[OracleProvider], *, temperature: float = 0.2, max_tokens: int = 2000):
        if not providers:
            raise OracleError("no oracle providers configured")
        self.providers = list(providers)
        self.temperature = temperature
        self.max_tokens = max_tokens

    def complete_json(self, *, system: str, prompt: str, max_tokens: Optional[int] = None) -> Dict[str, Any]:
        messages = [{"role": "system", "content": system}, {"role": "user", "content": prompt}]
        last_error: Optional[Exception] = None
        for provider in self.providers:
            try:
                text = _chat(provider, messages, temperature=self.temperature, max_tokens=max_tokens or self.max_tokens)
            except openai.OpenAIError as e:
                logger.warning(f"[oracle:{provider.name}] failed: {str(e)[:160]}; trying next provider")
                last_error = e
                continue
            try:
                return parse_json_object(text)
            except ValueError as e:
                raise OracleResponseError(f"{provider.name} returned non-JSON output: {e}") from e
        raise OracleError(f"all oracle providers failed: {last_error}")


def build_oracle(cfg: CuratorConfig, *, temperature: float = 0.2, max_tokens: int = 2000) -> JSONOracle:
    providers: List[OracleProvider] = []
    if cfg.openai_api_key:
        providers.append(
            OracleProvider(
                name="openai",
                client=openai.OpenAI(api_key=cfg.openai_api_key, timeout=60.0, max_retries=0),
                model=cfg.ai_model,
            )
        )
    if cfg.openrouter_api_key:
        providers.append(
            OracleProvider(
                name="openrouter",
                client=openai.OpenAI(
                    api_key=cfg.openrouter_api_key,
                    base_url=OPENROUTER_BASE_URL,
                    timeout=60.0,
                    max_retries=0,
                    default_headers={"X-Title": "NewsCurator"},
                ),
                model=cfg.openrouter_model,
                json_mode=False,
            )
        )
    return JSONOracle(providers, temperature=temperature, max_tokens=max_tokens)
