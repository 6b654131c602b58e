"""Request/response channels used to reach the server."""
from __future__ import annotations

import logging
import sys
from types import TracebackType
from typing import Any
from typing import Protocol
from typing import runtime_checkable
from typing import Sequence

if sys.version_info >= (3, 11):  # pragma: >=3.11 cover
    from typing import Self
else:  # pragma: <3.11 cover
    from typing_extensions import Self

import redis

logger = logging.getLogger(__name__)


@runtime_checkable
class Channel(Protocol):
    """Synchronous request/response channel.

    A channel sends one command with its ordered arguments and returns one
    reply. Connection management, pooling and retries are the channel's
    concern.

    Error replies are returned as `Exception` instances rather than raised,
    both at the top level and when embedded in an array reply. Transport
    failures are raised.
    """

    def close(self) -> None:
        """Close the channel and release its connections."""
        ...

    def execute(self, command: str, args: Sequence[bytes]) -> Any:
        """Send a command and return its raw reply.

        Args:
            command: Wire command token.
            args: Ordered command arguments.

        Returns:
            Raw reply.
        """
        ...


class RedisChannel:
    """Channel backed by a pooled redis-py client.

    Each call to [`execute()`][sketchwire.channel.RedisChannel.execute]
    checks a connection out of the client's pool for the duration of one
    round trip and returns it to the pool on every exit path.

    Args:
        hostname: Redis server hostname.
        port: Redis server port.
        db: Database index.
        password: Optional password.
        socket_timeout: Optional socket timeout in seconds.
        max_connections: Optional upper bound on pooled connections.
    """

    def __init__(
        self,
        hostname: str = 'localhost',
        port: int = 6379,
        db: int = 0,
        password: str | None = None,
        socket_timeout: float | None = None,
        max_connections: int | None = None,
    ) -> None:
        self.hostname = hostname
        self.port = port
        self.db = db
        self.password = password
        self.socket_timeout = socket_timeout
        self.max_connections = max_connections
        self._redis_client = redis.StrictRedis(
            host=hostname,
            port=port,
            db=db,
            password=password,
            socket_timeout=socket_timeout,
            max_connections=max_connections,
        )

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        exc_traceback: TracebackType | None,
    ) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f'{self.__class__.__name__}(hostname={self.hostname}, '
            f'port={self.port}, db={self.db})'
        )

    def close(self) -> None:
        """Close the underlying client and its connection pool."""
        self._redis_client.close()

    def config(self) -> dict[str, Any]:
        """Get the channel configuration.

        The configuration contains all the information needed to reconstruct
        the channel object.
        """
        return {
            'hostname': self.hostname,
            'port': self.port,
            'db': self.db,
            'password': self.password,
            'socket_timeout': self.socket_timeout,
            'max_connections': self.max_connections,
        }

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> RedisChannel:
        """Create a new channel instance from a configuration.

        Args:
            config: Configuration returned by `#!python .config()`.
        """
        return cls(**config)

    def execute(self, command: str, args: Sequence[bytes]) -> Any:
        """Send a command and return its raw reply.

        Args:
            command: Wire command token.
            args: Ordered command arguments.

        Returns:
            Raw reply. A top-level error reply is returned as a \
            `redis.ResponseError` instance.

        Raises:
            redis.ConnectionError: if the server cannot be reached.
            redis.TimeoutError: if the round trip exceeds the socket timeout.
        """
        try:
            return self._redis_client.execute_command(command, *args)
        except redis.ResponseError as e:
            logger.debug(f'{command} returned error reply: {e}')
            return e
