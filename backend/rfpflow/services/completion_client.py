import logging
import os
from typing import Protocol

import httpx
import ollama

from rfpflow.errors import CompletionError, UpstreamQuotaError

# Ollama can be slow on CPU or on first model load.
_OLLAMA_TIMEOUT_SEC = 120
_DEFAULT_OLLAMA_URL = "http://localhost:11434"
_DEFAULT_OLLAMA_MODEL = "llama3"

logger = logging.getLogger(__name__)


class TextCompletionClient(Protocol):
    """Narrow capability the core depends on for generated text.

    ``structured`` asks the provider for strict JSON output. Implementations
    raise ``UpstreamQuotaError`` when rate-limited and ``CompletionError`` for
    any other provider failure.
    """

    def generate(self, prompt: str, structured: bool = False) -> str:
        ...


class OllamaCompletionClient:
    def __init__(self, host: str, model: str, timeout: float = _OLLAMA_TIMEOUT_SEC):
        self.host = host
        self.model = model
        self._client = ollama.Client(host=host, timeout=timeout)

    def generate(self, prompt: str, structured: bool = False) -> str:
        kwargs = {"format": "json"} if structured else {}
        messages = [{"role": "user", "content": prompt}]
        try:
            response = self._client.chat(model=self.model, messages=messages, **kwargs)
        except ollama.ResponseError as e:
            if e.status_code == 429:
                raise UpstreamQuotaError() from e
            raise CompletionError(f"AI generation service failed: {e.error}") from e
        except (ollama.RequestError, ConnectionError, httpx.HTTPError) as e:
            raise CompletionError(f"AI generation service unreachable: {e}") from e
        msg = getattr(response, "message", None) or (response.get("message") if isinstance(response, dict) else None)
        text = (getattr(msg, "content", None) if msg is not None else None) or (msg.get("content") if isinstance(msg, dict) else None) or ""
        logger.debug("Ollama %s returned %s chars (structured=%s)", self.model, len(text), structured)
        return text


def ai_provider_info() -> dict[str, str]:
    """Which generation backend is configured, for the health endpoint."""
    return {
        "ai_provider": "ollama",
        "ai_model": os.getenv("OLLAMA_MODEL", _DEFAULT_OLLAMA_MODEL).strip() or _DEFAULT_OLLAMA_MODEL,
    }


def get_completion_client() -> TextCompletionClient:
    base_url = os.getenv("OLLAMA_BASE_URL", "").strip() or _DEFAULT_OLLAMA_URL
    model = os.getenv("OLLAMA_MODEL", "").strip() or _DEFAULT_OLLAMA_MODEL
    timeout = float(os.getenv("OLLAMA_TIMEOUT_SEC", "").strip() or _OLLAMA_TIMEOUT_SEC)
    return OllamaCompletionClient(host=base_url, model=model, timeout=timeout)
