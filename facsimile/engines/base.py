from __future__ import annotations

import abc

from ..descriptor import RequestDescriptor
from ..models import HIGH_FIDELITY, Response


class Engine(abc.ABC):
    """
    Something that can put a ``RequestDescriptor`` on the wire. Both engines
    share this contract so the dispatcher can treat them uniformly.
    """

    name: str = ""
    fidelity: str = HIGH_FIDELITY

    @abc.abstractmethod
    def is_available(self) -> bool:
        """Cheap check, no I/O."""

    @abc.abstractmethod
    async def send(self, descriptor: RequestDescriptor) -> Response:
        ...

    async def destroy_session(self, session_id: str) -> None:
        """Best effort; never raises."""

    async def close(self) -> None:
        """Release engine-owned resources."""


NATIVE = "native"
FALLBACK = "fallback"
