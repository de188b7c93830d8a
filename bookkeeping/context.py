"""Per-call context carrying auth metadata and timeout."""

from typing import Callable, Iterable, Optional, Tuple

from bookkeeping.utils import generate_ulid


Metadata = Tuple[Tuple[str, str], ...]


class CallContext:
    """Context attached to a single call to the bookkeeping server.

    A fresh context is built for every call, nothing is shared between calls.
    """

    def __init__(
        self,
        metadata: Optional[Iterable[Tuple[str, str]]] = None,
        timeout: Optional[float] = None,
    ):
        """Initialize a call context.

        Args:
            metadata: Key/value pairs sent along with the call (gRPC metadata
                or HTTP headers). Keys must be lowercase for gRPC.
            timeout: Deadline of the call in seconds. None waits forever.
        """
        self._metadata: Metadata = tuple(metadata or ())
        self._timeout = timeout

    @property
    def metadata(self) -> Metadata:
        """Get the call metadata."""
        return self._metadata

    @property
    def timeout(self) -> Optional[float]:
        """Get the call timeout in seconds."""
        return self._timeout

    def get(self, key: str) -> Optional[str]:
        """Get the first metadata value for a key, if any."""
        for name, value in self._metadata:
            if name == key:
                return value
        return None


ContextFactory = Callable[[], CallContext]


def token_context_factory(
    token: Optional[str] = None,
    timeout: Optional[float] = None,
) -> ContextFactory:
    """Build the default context factory.

    Each produced context carries a new ``x-request-id`` and, when a token is
    given, an ``authorization: Bearer <token>`` entry.

    Args:
        token: Optional bearer token.
        timeout: Optional per-call timeout in seconds.

    Returns:
        A callable producing a fresh CallContext per call.
    """

    def factory() -> CallContext:
        metadata = [("x-request-id", generate_ulid())]
        if token:
            metadata.append(("authorization", f"Bearer {token}"))
        return CallContext(metadata, timeout=timeout)

    return factory
