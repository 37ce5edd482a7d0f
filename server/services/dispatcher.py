"""Model dispatcher: one chat turn to one provider, or to the fallback generator.

``ModelDispatcher.dispatch`` never raises. Unknown identifiers and missing
credentials are answered by the fallback generator; transport errors,
non-success statuses, and malformed bodies are logged and answered the same
way, flagged ``failed`` so the caller does not charge quota for them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Mapping

import httpx

from config import settings
from services.fallback import FallbackGenerator
from services.providers import PROVIDER_REGISTRY, ChatHistory, ChatProvider

logger = logging.getLogger(__name__)


@dataclass
class DispatchResult:
    content: str
    provider_model_id: str
    fallback: bool = False
    failed: bool = False


def _default_client_factory(timeout: float) -> httpx.Client:
    return httpx.Client(timeout=timeout)


class ModelDispatcher:
    def __init__(
        self,
        credentials: Mapping[str, str],
        *,
        fallback: FallbackGenerator | None = None,
        registry: Mapping[str, ChatProvider] | None = None,
        timeout: float = 30.0,
        client_factory: Callable[[float], httpx.Client] = _default_client_factory,
    ) -> None:
        self._credentials = dict(credentials)
        self._fallback = fallback or FallbackGenerator()
        self._registry = registry if registry is not None else PROVIDER_REGISTRY
        self._timeout = timeout
        self._client_factory = client_factory

    def resolve(self, model_name: str) -> tuple[ChatProvider | None, str]:
        """Return the provider for *model_name* and its secret ("" when unset)."""
        provider = self._registry.get(model_name)
        if provider is None:
            return None, ""
        return provider, self._credentials.get(provider.credential) or ""

    def dispatch(self, model, history: ChatHistory) -> DispatchResult:
        turns = [{"role": m.get("role", ""), "content": m.get("content") or ""} for m in history]
        provider, api_key = self.resolve(model.name)

        if provider is None:
            logger.debug("No provider registered for %s, using fallback", model.name)
            return self._fallback_result(model, turns, failed=False)
        if not api_key:
            logger.info("%s is not configured for %s, using fallback", provider.credential, model.name)
            return self._fallback_result(model, turns, failed=False)

        try:
            with self._client_factory(self._timeout) as client:
                content = provider.send(turns, api_key, client)
        except Exception:
            logger.warning("Provider call for %s failed, using fallback", model.name, exc_info=True)
            return self._fallback_result(model, turns, failed=True)

        return DispatchResult(content=content, provider_model_id=provider.provider_model_id)

    def _fallback_result(self, model, turns: ChatHistory, *, failed: bool) -> DispatchResult:
        display_name = getattr(model, "display_name", None) or model.name
        return DispatchResult(
            content=self._fallback.generate(display_name, turns),
            provider_model_id=model.name,
            fallback=True,
            failed=failed,
        )


def build_dispatcher() -> ModelDispatcher:
    return ModelDispatcher(
        settings.provider_credentials(),
        fallback=FallbackGenerator(
            settings.FALLBACK_DELAY_MIN_SECONDS, settings.FALLBACK_DELAY_MAX_SECONDS
        ),
        timeout=settings.PROVIDER_TIMEOUT_SECONDS,
    )


def get_dispatcher() -> ModelDispatcher:
    """FastAPI dependency: a dispatcher wired to the configured credentials."""
    return build_dispatcher()
