"""Dispatch encoded commands over a channel and decode the replies."""
from __future__ import annotations

import logging
from typing import Any
from typing import Callable
from typing import TypeVar

from sketchwire.channel import Channel
from sketchwire.commands import CommandT
from sketchwire.exceptions import ProtocolRejectionError
from sketchwire.exceptions import ProtocolViolationError
from sketchwire.exceptions import ServerDataError
from sketchwire.types import ArgumentList

T = TypeVar('T')

logger = logging.getLogger(__name__)


class Dispatcher:
    """Bind a channel to the reply decoders for single commands.

    Args:
        channel: Channel used to send commands.
    """

    def __init__(self, channel: Channel) -> None:
        self.channel = channel

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}(channel={self.channel!r})'

    def execute(
        self,
        command: CommandT,
        args: ArgumentList,
        decoder: Callable[[Any], T],
    ) -> T:
        """Execute one command and decode its reply.

        Args:
            command: Command to send.
            args: Encoded arguments. The first argument is the key.
            decoder: Function converting the raw reply to the result type.

        Returns:
            Decoded reply.

        Raises:
            ProtocolRejectionError: if the server replies with an error or a
                status other than `OK`.
            ServerDataError: if the reply carries an error element where a
                value was expected.
            ProtocolViolationError: if the reply does not have the shape
                expected by `decoder`.
        """
        key = args[0] if len(args) > 0 else None
        logger.debug(f'Sending {command.value} with {len(args)} argument(s)')
        reply = self.channel.execute(command.value, args)

        if isinstance(reply, Exception):
            raise ProtocolRejectionError(
                str(reply),
                command=command.value,
                key=key,
            ) from reply

        try:
            return decoder(reply)
        except (ProtocolRejectionError, ServerDataError) as e:
            e.command = command.value
            e.key = key
            raise
        except ProtocolViolationError as e:
            raise ProtocolViolationError(
                f'Invalid reply to {command.value}: {e.message}',
                command=command.value,
                key=key,
            ) from e
