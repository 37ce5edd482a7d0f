"""Offline responder used when no real provider call can be made."""

from __future__ import annotations

import random
import time
from typing import Callable

from services.providers import ChatHistory

FALLBACK_TEMPLATES: tuple[str, ...] = (
    'Hello, I am {display_name}! I received your question: "{message}".',
    'As {display_name}, I am glad to help. About "{message}", my suggestion is...',
    '{display_name} analysis: "{message}" is a really interesting topic.',
    'Thank you for choosing {display_name}! I understand you want to know about "{message}".',
)

DEMO_NOTICE = (
    "Note: this is a demo reply. Configure the matching API key to use the real model."
)


def last_user_message(history: ChatHistory) -> str:
    for entry in reversed(history):
        if entry.get("role") == "user":
            return entry.get("content", "")
    return ""


class FallbackGenerator:
    """Template reply plus an artificial delay emulating network latency.

    Shape is deterministic in the model display name and the latest user
    message; only the template choice and delay are random.
    """

    def __init__(
        self,
        min_delay: float = 1.0,
        max_delay: float = 3.0,
        *,
        rng: random.Random | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.min_delay = min_delay
        self.max_delay = max(min_delay, max_delay)
        self._rng = rng or random.Random()
        self._sleep = sleep

    def generate(self, display_name: str, history: ChatHistory) -> str:
        template = self._rng.choice(FALLBACK_TEMPLATES)
        self._sleep(self._rng.uniform(self.min_delay, self.max_delay))
        text = template.format(display_name=display_name, message=last_user_message(history))
        return f"{text}\n\n{DEMO_NOTICE}"
