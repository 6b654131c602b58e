"""Client configuration model."""

from __future__ import annotations

import pathlib
import sys
from typing import Any
from typing import Dict  # noqa: UP035
from typing import Optional

if sys.version_info >= (3, 11):  # pragma: >=3.11 cover
    import tomllib
    from typing import Self
else:  # pragma: <3.11 cover
    import tomli as tomllib
    from typing_extensions import Self

import tomli_w
from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import field_validator

from sketchwire.client import SketchClient


class ClientConfig(BaseModel):
    """Connection settings of a [`SketchClient`][sketchwire.client.SketchClient].

    Example:
        ```python
        from sketchwire.config import ClientConfig

        config = ClientConfig(hostname='localhost', port=6379)
        config.write_toml('sketchwire.toml')

        with ClientConfig.from_toml('sketchwire.toml').get_client() as client:
            client.bf_add('users', 'alice')
        ```

    Attributes:
        hostname: Redis server hostname.
        port: Redis server port.
        db: Database index.
        password: Optional password.
        socket_timeout: Optional socket timeout in seconds.
        max_connections: Optional upper bound on pooled connections.

    Raises:
        ValueError: If the port is not in the range [1, 65535] or the
            database index is negative.
    """  # noqa: E501

    model_config = ConfigDict(extra='forbid')

    hostname: str = Field('localhost')
    port: int = Field(6379)
    db: int = Field(0)
    password: Optional[str] = Field(None)  # noqa: UP007
    socket_timeout: Optional[float] = Field(None)  # noqa: UP007
    max_connections: Optional[int] = Field(None)  # noqa: UP007

    @field_validator('port')
    @classmethod
    def _port_validator(cls, v: int) -> int:
        if not (1 <= v <= 65535):  # noqa: PLR2004
            raise ValueError('Port must be in range [1, 65535].')
        return v

    @field_validator('db')
    @classmethod
    def _db_validator(cls, v: int) -> int:
        if v < 0:
            raise ValueError('Database index must be >= 0.')
        return v

    @classmethod
    def from_toml(cls, filepath: str | pathlib.Path) -> Self:
        """Create a configuration from a TOML file.

        Values are validated in strict mode so a quoted port or database
        index is rejected rather than coerced.

        Args:
            filepath: Path to TOML file to load.

        Raises:
            pydantic.ValidationError: if the file contains unknown fields or
                values of the wrong type.
        """
        with open(filepath, 'rb') as f:
            data = tomllib.load(f)
        return cls.model_validate(data, strict=True)

    def write_toml(self, filepath: str | pathlib.Path) -> None:
        """Write the configuration to a TOML file.

        Unset optional fields are omitted.

        Args:
            filepath: Path to TOML file to write.
        """
        filepath = pathlib.Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)
        with open(filepath, 'wb') as f:
            tomli_w.dump(self.model_dump(exclude_none=True), f)

    def options(self) -> Dict[str, Any]:  # noqa: UP006
        """Get the keyword arguments of the channel."""
        return self.model_dump()

    def get_client(self) -> SketchClient:
        """Create a client using this configuration."""
        return SketchClient.from_config(self.options())
