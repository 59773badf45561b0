"""CLI and serving functions for running a relay server."""
from __future__ import annotations

import asyncio
import contextlib
import datetime
import logging
import logging.handlers
import os
import pprint
import signal
import ssl
import sys
from typing import Generator

import click
import uvicorn
from websockets.asyncio.server import serve as websockets_serve

from syrja.directory.serve import create_app
from syrja.directory.storage import AddressStorage
from syrja.directory.storage import DictStorage
from syrja.directory.storage import SQLiteStorage
from syrja.relay.config import DirectoryConfig
from syrja.relay.config import RelayServingConfig
from syrja.relay.ratelimit import RateLimiter
from syrja.relay.server import RelayServer
from syrja.utils.tasks import spawn_guarded_background_task
from syrja.utils.tasks import spawn_periodic_task

logger = logging.getLogger(__name__)


def periodic_connection_logger(
    server: RelayServer,
    interval: float = 60,
    limit: float | None = 60,
    level: int = logging.INFO,
) -> asyncio.Task[None]:
    """Create an asyncio task which logs currently open connections.

    Args:
        server: Relay server instance to log connections of.
        interval: Seconds between logging connections.
        limit: Only log detailed connection list if the number of
            connections is less than this number. Useful for debugging or
            avoiding clobbering the logs by printing thousands of
            connections.
        level: Logging level.

    Returns:
        Asyncio task.
    """

    async def _log() -> None:
        while True:
            await asyncio.sleep(interval)
            connections = server.connection_manager.get_connections()
            connections = sorted(connections, key=lambda c: c.created)
            message = (
                f'Open connections: {len(connections)}, '
                f'registered identifiers: {len(server.registry)}, '
                f'rooms: {len(server.rooms)}, '
                f'rate limited origins: {len(server.rate_limiter)}'
            )
            if server.drops:
                drops = ', '.join(
                    f'{reason.value}={count}'
                    for reason, count in sorted(
                        server.drops.items(),
                        key=lambda item: item[0].value,
                    )
                )
                message = f'{message}, dropped events: {drops}'
            if limit is not None and 0 < len(connections) < limit:
                connections_repr = '\n'.join(repr(c) for c in connections)
                message = f'{message}\n{connections_repr}'
            logger.log(level, message)

    return spawn_guarded_background_task(
        _log,
        name='relay-server-connection-logger',
    )


def periodic_rate_limit_sweeper(
    rate_limiter: RateLimiter,
    interval: float,
) -> asyncio.Task[None]:
    """Create an asyncio task which forgets expired rate limit windows.

    Args:
        rate_limiter: Rate limiter to sweep.
        interval: Seconds between sweeps.

    Returns:
        Asyncio task.
    """
    return spawn_periodic_task(
        rate_limiter.sweep,
        interval,
        name='relay-server-rate-limit-sweeper',
    )


class _DirectoryServer(uvicorn.Server):
    # Signals are handled by serve() which stops both servers together.

    def install_signal_handlers(self) -> None:  # pragma: no cover
        pass

    @contextlib.contextmanager
    def capture_signals(self) -> Generator[None, None, None]:
        yield


def _get_storage(config: DirectoryConfig) -> AddressStorage:
    database_path = config.database_path
    if database_path is not None:
        logger.info(
            f'Using SQLite database for storage (path: {database_path})',
        )
        return SQLiteStorage(database_path)
    else:
        logger.warning(
            'Database path not provided. Addresses will not be persisted',
        )
        return DictStorage()


async def _cancel(task: asyncio.Task[None] | None) -> None:
    if task is None:
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


async def serve(config: RelayServingConfig) -> None:
    """Run the relay server and the address directory.

    Initializes a [`RelayServer`][syrja.relay.server.RelayServer]
    and starts a websocket server listening for new connections
    and incoming events. If enabled, the address directory is served by
    uvicorn on its own port in the same event loop.

    Note:
        This function will not configure any logging. Configuring logging
        according to
        [`RelayServingConfig.logging`][syrja.relay.config.RelayServingConfig]
        is the responsibility of the caller.

    Args:
        config: Serving configuration.
    """
    rate_limiter = RateLimiter(
        limit=config.rate_limit.limit,
        window=config.rate_limit.window,
    )
    server = RelayServer(
        rate_limiter=rate_limiter,
        max_message_bytes=config.max_message_bytes,
    )

    # Set the stop condition when receiving SIGINT (ctrl-C) and SIGTERM.
    loop = asyncio.get_running_loop()
    stop = loop.create_future()
    loop.add_signal_handler(signal.SIGINT, stop.set_result, None)
    loop.add_signal_handler(signal.SIGTERM, stop.set_result, None)

    ssl_context: ssl.SSLContext | None = None
    if config.certfile is not None:
        ssl_context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        ssl_context.load_cert_chain(config.certfile, keyfile=config.keyfile)

    connection_logger_task: asyncio.Task[None] | None = None
    if config.logging.current_connection_interval is not None:
        level = (
            config.logging.default_level
            if isinstance(config.logging.default_level, int)
            else logging.getLevelName(config.logging.default_level)
        )
        connection_logger_task = periodic_connection_logger(
            server,
            config.logging.current_connection_interval,
            config.logging.current_connection_limit,
            level=level,
        )

    sweeper_task: asyncio.Task[None] | None = None
    if config.rate_limit.sweep_interval is not None:
        sweeper_task = periodic_rate_limit_sweeper(
            rate_limiter,
            config.rate_limit.sweep_interval,
        )

    directory_server: _DirectoryServer | None = None
    directory_task: asyncio.Task[None] | None = None
    if config.directory.enabled:
        app = create_app(_get_storage(config.directory))
        directory_host = (
            config.directory.host
            if config.directory.host is not None
            else config.host
        )
        directory_server = _DirectoryServer(
            uvicorn.Config(
                app,
                host=(
                    directory_host
                    if directory_host is not None
                    else '0.0.0.0'
                ),
                port=config.directory.port,
                log_config=None,
                access_log=False,
                ssl_certfile=config.certfile,
                ssl_keyfile=config.keyfile,
            ),
        )
        directory_task = spawn_guarded_background_task(
            directory_server.serve,
            name='relay-server-directory',
        )

    config_repr = pprint.pformat(config, indent=2)
    logger.info(f'Relay serving configuration:\n{config_repr}')

    async with websockets_serve(
        server.handler,
        config.host,
        config.port,
        logger=None,
        ssl=ssl_context,
    ):
        logger.info(f'Relay server listening on port {config.port}')
        if config.directory.enabled:
            logger.info(
                'Address directory listening on port '
                f'{config.directory.port}',
            )
        logger.info('Use ctrl-C to stop')
        await stop

    if directory_server is not None and directory_task is not None:
        directory_server.should_exit = True
        await directory_task

    await _cancel(connection_logger_task)
    await _cancel(sweeper_task)

    loop.remove_signal_handler(signal.SIGINT)
    loop.remove_signal_handler(signal.SIGTERM)

    logger.info('Relay server shutdown')


@click.command()
@click.option('--config', '-c', 'config_path', help='Configuration file.')
@click.option('--host', metavar='ADDR', help='Interface to bind to.')
@click.option(
    '--port',
    type=int,
    metavar='PORT',
    envvar='PORT',
    help='Port to bind the relay to.',
)
@click.option(
    '--directory-port',
    type=int,
    metavar='PORT',
    help='Port to bind the address directory to.',
)
@click.option(
    '--database',
    metavar='PATH',
    help='SQLite database file of the address directory.',
)
@click.option(
    '--no-directory',
    is_flag=True,
    default=False,
    help='Do not serve the address directory.',
)
@click.option('--log-dir', metavar='PATH', help='Logging directory.')
@click.option(
    '--log-level',
    type=click.Choice(
        ['CRITICAL', 'ERROR', 'WARNING', 'INFO', 'DEBUG'],
        case_sensitive=False,
    ),
    help='Minimum logging level.',
)
def cli(
    config_path: str | None,
    host: str | None,
    port: int | None,
    directory_port: int | None,
    database: str | None,
    no_directory: bool,
    log_dir: str | None,
    log_level: str | None,
) -> None:
    """Run a relay server instance.

    The relay server is used by clients to find each other by identifier
    and exchange signaling events. If no configuration file is provided, a
    default configuration will be created from
    [`RelayServingConfig()`][syrja.relay.config.RelayServingConfig].
    The remaining CLI options will override the options provided in the
    configuration object.
    """
    config = (
        RelayServingConfig()
        if config_path is None
        else RelayServingConfig.from_toml(config_path)
    )

    # Override config with CLI options if given
    if host is not None:
        config.host = host
    if port is not None:
        config.port = port
    if directory_port is not None:
        config.directory.port = directory_port
    if database is not None:
        config.directory.database_path = database
    if no_directory:
        config.directory.enabled = False
    if log_dir is not None:
        config.logging.log_dir = log_dir
    if log_level is not None:
        config.logging.default_level = logging.getLevelName(log_level.upper())

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if config.logging.log_dir is not None:
        os.makedirs(config.logging.log_dir, exist_ok=True)
        handlers.append(
            logging.handlers.TimedRotatingFileHandler(
                os.path.join(config.logging.log_dir, 'server.log'),
                # Rotate logs Sunday at midnight
                when='W6',
                atTime=datetime.time(hour=0, minute=0, second=0),
            ),
        )

    logging.basicConfig(
        format=(
            '[%(asctime)s.%(msecs)03d] %(levelname)-5s (%(name)s) :: '
            '%(message)s'
        ),
        datefmt='%Y-%m-%d %H:%M:%S',
        level=config.logging.default_level,
        handlers=handlers,
    )

    logging.getLogger('websockets').setLevel(config.logging.websockets_level)

    asyncio.run(serve(config))
