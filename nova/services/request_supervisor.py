"""Supersession of in-flight streaming requests."""

import asyncio

from nova.core.logging import get_logger

logger = get_logger("request_supervisor")


class RequestSupervisor:
    """Tracks one active request per ``(kind, key)``.

    Starting a request cancels the token of the previous request with the same
    kind and key. Streams check their token between chunks and stop once it is
    set. Process-scoped; requests on other instances are not seen.
    """

    def __init__(self) -> None:
        self._active: dict[tuple[str, str], asyncio.Event] = {}

    def begin(self, kind: str, key: str) -> asyncio.Event:
        """Register a new request and return its cancellation token."""
        previous = self._active.get((kind, key))
        if previous is not None:
            previous.set()
            logger.debug("request_superseded", kind=kind, key=key)
        token = asyncio.Event()
        self._active[(kind, key)] = token
        return token

    def finish(self, kind: str, key: str, token: asyncio.Event) -> None:
        """Forget ``token`` if it is still the active one for its key."""
        if self._active.get((kind, key)) is token:
            del self._active[(kind, key)]

    def active_count(self) -> int:
        return len(self._active)
