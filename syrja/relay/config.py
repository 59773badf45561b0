"""Relay server configuration file parsing."""

from __future__ import annotations

import logging
import pathlib
import sys

if sys.version_info >= (3, 11):  # pragma: >=3.11 cover
    from typing import Self
else:  # pragma: <3.11 cover
    from typing_extensions import Self

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import field_validator

from syrja.relay.ratelimit import DEFAULT_LIMIT
from syrja.relay.ratelimit import DEFAULT_WINDOW
from syrja.utils.config import load


class RateLimitConfig(BaseModel):
    """Rate limiting of registrations and connection requests.

    Attributes:
        limit: Admitted operations per origin address per window.
        window: Window length in seconds.
        sweep_interval: Optional seconds between sweeps which forget expired
            windows. If `None`, windows are never forgotten.
    """

    model_config = ConfigDict(extra='forbid')

    limit: int = DEFAULT_LIMIT
    window: float = DEFAULT_WINDOW
    sweep_interval: float | None = 300.0

    @field_validator('limit')
    @classmethod
    def _limit_validator(cls, v: int) -> int:
        if v < 1:
            raise ValueError('Limit must be >= 1.')
        return v

    @field_validator('window')
    @classmethod
    def _window_validator(cls, v: float) -> float:
        if v <= 0:
            raise ValueError('Window must be greater than zero.')
        return v

    @field_validator('sweep_interval')
    @classmethod
    def _sweep_interval_validator(cls, v: float | None) -> float | None:
        if v is not None and v <= 0:
            raise ValueError(
                'Sweep interval must be None or greater than zero.',
            )
        return v


class DirectoryConfig(BaseModel):
    """Address directory HTTP API configuration.

    Attributes:
        enabled: Serve the address directory alongside the relay.
        host: Network interface the directory binds to. Defaults to the
            relay's host.
        port: Network port the directory binds to.
        database_path: Optional path to SQLite database file that will be
            used for storing claimed addresses. If `None`, addresses will
            only be stored in-memory.
    """

    model_config = ConfigDict(extra='forbid')

    enabled: bool = True
    host: str | None = None
    port: int = 3001
    database_path: str | None = None


class RelayLoggingConfig(BaseModel):
    """Relay logging configuration.

    Attributes:
        log_dir: Default logging directory.
        default_level: Default logging level for the root logger.
        websockets_level: Log level for the `websockets` logger. Websockets
            logs with much higher frequency so it is suggested to set this
            to `WARNING` or higher.
        current_connection_interval: Optional seconds between logging the
            number of currently open connections and registrations.
        current_connection_limit: Max threshold for enumerating the
            detailed list of connections. If `None`, no detailed
            list will be logged.
    """

    model_config = ConfigDict(extra='forbid')

    log_dir: str | None = None
    default_level: int | str = logging.INFO
    websockets_level: int | str = logging.WARNING
    current_connection_interval: int | None = 60
    current_connection_limit: int | None = 32


class RelayServingConfig(BaseModel):
    """Relay serving configuration.

    Attributes:
        host: Network interface the server binds to.
        port: Network port the server binds to.
        certfile: Certificate file (PEM format) use to enable TLS.
        keyfile: Private key file. If not specified, the key will be
            taken from the certfile.
        max_message_bytes: Maximum size in bytes of messages received by
            the relay server.
        rate_limit: Rate limiting configuration.
        directory: Address directory configuration.
        logging: Logging configuration.
    """

    model_config = ConfigDict(extra='forbid')

    host: str | None = None
    port: int = 3000
    certfile: str | None = None
    keyfile: str | None = None
    max_message_bytes: int | None = None
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    directory: DirectoryConfig = Field(default_factory=DirectoryConfig)
    logging: RelayLoggingConfig = Field(default_factory=RelayLoggingConfig)

    @classmethod
    def from_toml(cls, filepath: str | pathlib.Path) -> Self:
        """Parse an TOML config file.

        Example:
            Minimal config with a persistent address directory.
            ```toml title="relay.toml"
            port = 3000

            [directory]
            port = 3001
            database_path = "/var/lib/syrja/syrja.db"

            [logging]
            log_dir = "/path/to/log/dir"
            default_level = "INFO"
            websockets_level = "WARNING"
            ```

            ```python
            from syrja.relay.config import RelayServingConfig

            config = RelayServingConfig.from_toml('relay.toml')
            ```

        Example:
            Serve with SSL, a stricter rate limit, and no directory.
            ```toml title="relay.toml"
            host = "0.0.0.0"
            port = 443
            certfile = "/path/to/cert.pem"
            keyfile = "/path/to/privkey.pem"

            [rate_limit]
            limit = 10
            window = 60.0

            [directory]
            enabled = false
            ```

        Note:
            Omitted values will be set to their defaults.
        """
        with open(filepath, 'rb') as f:
            return load(cls, f)
