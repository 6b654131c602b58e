"""Exceptions raised when a command is rejected or a reply is malformed."""
from __future__ import annotations


class SketchError(Exception):
    """Base exception class for sketch command errors."""

    pass


class _ServerMessageError(SketchError):
    def __init__(
        self,
        message: str,
        command: str | None = None,
        key: bytes | str | None = None,
    ) -> None:
        self.message = message
        self.command = command
        self.key = key
        super().__init__(message)

    def __repr__(self) -> str:
        return (
            f'{self.__class__.__name__}(message={self.message!r}, '
            f'command={self.command!r}, key={self.key!r})'
        )


class ProtocolRejectionError(_ServerMessageError):
    """Exception raised when the server rejects a command.

    Raised for a status reply other than `OK` and for a top-level error
    reply. The server message is kept verbatim in `message`.

    Args:
        message: Message returned by the server.
        command: Wire command that was rejected.
        key: Key the command was issued against.
    """

    pass


class ServerDataError(_ServerMessageError):
    """Exception raised for an error element embedded in a data reply.

    Embedded errors are normally filtered out of multi-value replies. This
    is raised only when the error is the sole or leading element of a
    reply that is expected to carry a value.

    Args:
        message: Message of the embedded error element.
        command: Wire command that produced the reply.
        key: Key the command was issued against.
    """

    pass


class ProtocolViolationError(_ServerMessageError):
    """Exception raised when a reply does not match the expected shape.

    Args:
        message: Description of the mismatch.
        command: Wire command that produced the reply.
        key: Key the command was issued against.
    """

    pass
