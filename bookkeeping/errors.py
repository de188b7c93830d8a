"""Exceptions raised by the bookkeeping clients."""

from typing import Any, Optional


class BookkeepingError(RuntimeError):
    """A call to the bookkeeping server failed.

    The message is the one provided by the server or the transport, unchanged.
    """

    def __init__(self, message: str, code: Optional[Any] = None):
        """Initialize the error.

        Args:
            message: Server or transport error message.
            code: gRPC status code or HTTP status, when known.
        """
        super().__init__(message)
        self.message = message
        self.code = code
