"""`sketchwire` command-line interface.

Inspect sketches and move Cuckoo filters between keys or servers through
dump files.

```bash
$ sketchwire --port 6379 dump users users.dump
$ sketchwire --port 6380 restore users users.dump
```
"""
from __future__ import annotations

import logging
import sys
from typing import ClassVar

import click

import sketchwire
from sketchwire.client import SketchClient
from sketchwire.config import ClientConfig
from sketchwire.exceptions import SketchError
from sketchwire.scandump import read_chunks
from sketchwire.scandump import write_chunks

logger = logging.getLogger(__name__)


class _CLIFormatter(logging.Formatter):
    """Custom format for CLI printing.

    Source: https://stackoverflow.com/questions/1343227
    """

    grey = '\x1b[0;30m'
    red = '\x1b[0;31m'
    green = '\x1b[0;32m'
    yellow = '\x1b[0;33m'
    cyan = '\x1b[0;36m'
    bold_red = '\x1b[1;31m'
    reset = '\x1b[0m'

    FORMATS: ClassVar[dict[int, str]] = {
        logging.DEBUG: f'{cyan}DEBUG:{reset} %(message)s',
        logging.INFO: f'{green}INFO:{reset} %(message)s',
        logging.WARNING: f'{yellow}WARNING:{reset} %(message)s',
        logging.ERROR: f'{red}ERROR:{reset} %(message)s',
        logging.CRITICAL: f'{bold_red}CRITICAL:{reset} %(message)s',
    }

    def format(self, record: logging.LogRecord) -> str:  # pragma: no cover
        formatter = logging.Formatter(self.FORMATS[record.levelno])
        return formatter.format(record)


_INFO_METHODS = {
    'bf': 'bf_info',
    'cf': 'cf_info',
    'cms': 'cms_info',
    'topk': 'topk_info',
    'tdigest': 'tdigest_info',
}


def _get_client(ctx: click.Context) -> SketchClient:
    return ctx.obj['CONFIG'].get_client()


@click.group()
@click.option(
    '--config',
    'config_path',
    default=None,
    type=click.Path(exists=True, dir_okay=False),
    metavar='PATH',
    help='TOML client configuration. Overrides --host and --port.',
)
@click.option(
    '--host',
    default='localhost',
    metavar='ADDR',
    help='Redis server hostname.',
)
@click.option(
    '--port',
    default=6379,
    type=int,
    metavar='PORT',
    help='Redis server port.',
)
@click.option(
    '--log-level',
    default='INFO',
    type=click.Choice(
        ['ERROR', 'WARNING', 'INFO', 'DEBUG'],
        case_sensitive=False,
    ),
    help='Minimum logging level.',
)
@click.pass_context
def cli(
    ctx: click.Context,
    config_path: str | None,
    host: str,
    port: int,
    log_level: str,
) -> None:
    """Inspect, dump and restore probabilistic sketches."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_CLIFormatter())
    logging.basicConfig(level=log_level, handlers=[handler])
    ctx.ensure_object(dict)
    if config_path is not None:
        ctx.obj['CONFIG'] = ClientConfig.from_toml(config_path)
    else:
        ctx.obj['CONFIG'] = ClientConfig(hostname=host, port=port)


@cli.command(name='help')
def show_help() -> None:
    """Show available commands and options."""
    with click.Context(cli) as ctx:
        click.echo(cli.get_help(ctx))


@cli.command()
def version() -> None:
    """Show the sketchwire version."""
    click.echo(f'sketchwire v{sketchwire.__version__}')


@cli.command()
@click.argument('key', metavar='KEY', required=True)
@click.option(
    '--type',
    'sketch_type',
    default='bf',
    type=click.Choice(sorted(_INFO_METHODS), case_sensitive=False),
    help='Type of the sketch stored at KEY.',
)
@click.pass_context
def info(ctx: click.Context, key: str, sketch_type: str) -> None:
    """Print information about the sketch stored at KEY."""
    with _get_client(ctx) as client:
        try:
            fields = getattr(client, _INFO_METHODS[sketch_type.lower()])(key)
        except SketchError as e:
            logger.error(f'Failed to get info for {key}: {e}')
            ctx.exit(1)
    for name, value in fields.items():
        click.echo(f'{name}: {value}')


@cli.command()
@click.argument('key', metavar='KEY', required=True)
@click.argument('path', metavar='PATH', type=click.Path(dir_okay=False))
@click.pass_context
def dump(ctx: click.Context, key: str, path: str) -> None:
    """Dump the Cuckoo filter at KEY to PATH."""
    with _get_client(ctx) as client:
        try:
            with open(path, 'wb') as f:
                count = write_chunks(client.cf_scandump_iter(key), f)
        except SketchError as e:
            logger.error(f'Failed to dump {key}: {e}')
            ctx.exit(1)
    logger.info(f'Wrote {count} chunk(s) of {key} to {path}')


@cli.command()
@click.argument('key', metavar='KEY', required=True)
@click.argument(
    'path',
    metavar='PATH',
    type=click.Path(exists=True, dir_okay=False),
)
@click.option(
    '--replace',
    is_flag=True,
    default=False,
    help='Delete KEY before restoring.',
)
@click.pass_context
def restore(ctx: click.Context, key: str, path: str, replace: bool) -> None:
    """Restore the Cuckoo filter at KEY from a dump at PATH."""
    with _get_client(ctx) as client:
        if replace and client.delete(key):
            logger.info(f'Deleted existing key {key}')
        try:
            with open(path, 'rb') as f:
                count = client.cf_load_chunks(key, read_chunks(f))
        except SketchError as e:
            logger.error(f'Failed to restore {key}: {e}')
            ctx.exit(1)
    logger.info(f'Loaded {count} chunk(s) from {path} into {key}')
