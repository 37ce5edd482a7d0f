"""Chat-completion provider integrations and the model-identifier registry.

Each integration is a ``ChatProvider`` strategy with a uniform
``send(history, api_key, client) -> str`` contract. The registry maps a chat
model identifier (exact, case-sensitive) to the strategy serving it; anything
not in the registry is answered by the fallback generator.
"""

from __future__ import annotations

from typing import Any, Sequence

import httpx

MAX_TOKENS = 1000
TEMPERATURE = 0.7
ANTHROPIC_VERSION = "2023-06-01"

ChatHistory = Sequence[dict[str, str]]


class ProviderError(Exception):
    """The provider answered, but not with a usable reply."""


class ChatProvider:
    """Base strategy: build one POST request, send it, extract the reply text."""

    def __init__(self, endpoint: str, provider_model_id: str, credential: str) -> None:
        self.endpoint = endpoint
        self.provider_model_id = provider_model_id
        # Name of the Settings field holding this provider's secret
        self.credential = credential

    def build_headers(self, api_key: str) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
        }

    def build_payload(self, history: ChatHistory) -> dict[str, Any]:
        raise NotImplementedError

    def parse_reply(self, data: Any) -> str:
        raise NotImplementedError

    def send(self, history: ChatHistory, api_key: str, client: httpx.Client) -> str:
        response = client.post(
            self.endpoint,
            headers=self.build_headers(api_key),
            json=self.build_payload(history),
        )
        response.raise_for_status()
        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderError(f"{self.provider_model_id}: response is not JSON") from exc
        return self.parse_reply(data)

    def __repr__(self):
        return f"<{type(self).__name__} {self.provider_model_id}>"


def _require_text(value: Any, where: str) -> str:
    if not isinstance(value, str) or not value:
        raise ProviderError(f"missing reply text at {where}")
    return value


class OpenAICompatibleProvider(ChatProvider):
    """Providers speaking the OpenAI chat-completions wire format."""

    def build_payload(self, history: ChatHistory) -> dict[str, Any]:
        return {
            "model": self.provider_model_id,
            "messages": [dict(m) for m in history],
            "max_tokens": MAX_TOKENS,
            "temperature": TEMPERATURE,
        }

    def parse_reply(self, data: Any) -> str:
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise ProviderError("malformed chat-completions body") from exc
        return _require_text(content, "choices[0].message.content")


def split_system_messages(history: ChatHistory) -> tuple[str | None, list[dict[str, str]]]:
    """Separate system-role content from the conversational turns.

    Multiple system entries are joined with a blank line.
    """
    system_parts = [m["content"] for m in history if m.get("role") == "system"]
    turns = [dict(m) for m in history if m.get("role") != "system"]
    system = "\n\n".join(system_parts) if system_parts else None
    return system, turns


class AnthropicProvider(ChatProvider):
    """Anthropic Messages API: system prompt travels in its own top-level field."""

    def build_headers(self, api_key: str) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-api-key": api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }

    def build_payload(self, history: ChatHistory) -> dict[str, Any]:
        system, turns = split_system_messages(history)
        payload: dict[str, Any] = {
            "model": self.provider_model_id,
            "max_tokens": MAX_TOKENS,
            "temperature": TEMPERATURE,
            "messages": turns,
        }
        if system is not None:
            payload["system"] = system
        return payload

    def parse_reply(self, data: Any) -> str:
        try:
            content = data["content"][0]["text"]
        except (KeyError, IndexError, TypeError) as exc:
            raise ProviderError("malformed messages body") from exc
        return _require_text(content, "content[0].text")


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

PROVIDER_REGISTRY: dict[str, ChatProvider] = {}


def register_provider(model_name: str, provider: ChatProvider) -> ChatProvider:
    """Route chat model *model_name* to *provider*. Re-registering replaces."""
    PROVIDER_REGISTRY[model_name] = provider
    return provider


def get_provider(model_name: str) -> ChatProvider | None:
    return PROVIDER_REGISTRY.get(model_name)


register_provider(
    "deepseek-chat",
    OpenAICompatibleProvider(
        "https://api.deepseek.com/v1/chat/completions", "deepseek-chat", "DEEPSEEK_API_KEY"
    ),
)
register_provider(
    "qwen2.5-72b",
    OpenAICompatibleProvider(
        "https://dashscope.aliyuncs.com/compatible-mode/v1/chat/completions",
        "qwen2.5-72b-instruct",
        "QWEN_API_KEY",
    ),
)
register_provider(
    "glm-4-9b",
    OpenAICompatibleProvider(
        "https://open.bigmodel.cn/api/paas/v4/chat/completions", "glm-4-9b", "GLM_API_KEY"
    ),
)
register_provider(
    "llama3.1-8b",
    OpenAICompatibleProvider(
        "https://router.huggingface.co/v1/chat/completions",
        "meta-llama/Llama-3.1-8B-Instruct",
        "HUGGINGFACE_API_KEY",
    ),
)
register_provider(
    "gpt-4o-mini",
    OpenAICompatibleProvider(
        "https://api.openai.com/v1/chat/completions", "gpt-4o-mini", "OPENAI_API_KEY"
    ),
)
register_provider(
    "claude-3-haiku",
    AnthropicProvider(
        "https://api.anthropic.com/v1/messages", "claude-3-haiku-20240307", "ANTHROPIC_API_KEY"
    ),
)
