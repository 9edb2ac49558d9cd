"""Test doubles for the model adapter seam."""
from __future__ import annotations

from typing import List, Sequence, Union

from eduvane.adapters import GenerationRequest

Scripted = Union[str, Exception]


class FakeAdapter:
    """Replays scripted replies in order and records every request it receives."""

    def __init__(self, replies: Sequence[Scripted] = (), *, model: str = "fake-model") -> None:
        self.model = model
        self._replies: List[Scripted] = list(replies)
        self.requests: List[GenerationRequest] = []
        self.closed = False

    async def generate(self, request: GenerationRequest) -> str:
        self.requests.append(request)
        if not self._replies:
            raise AssertionError(f"unexpected adapter call #{len(self.requests)}")
        reply = self._replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def aclose(self) -> None:
        self.closed = True

    @property
    def calls(self) -> int:
        return len(self.requests)
