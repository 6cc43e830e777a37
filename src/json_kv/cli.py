"""Command-line interface for the JSON key-value store."""

import json
import logging
import shutil
import sys
from pathlib import Path
from typing import Optional

import click

from . import __version__
from .error_handler import ErrorHandler
from .io.query_output import StreamOutput
from .json_store import JSONStore
from .models import StoreConfig
from .models.store_config import DEFAULT_MAX_BATCH_BYTES
from .server import make_server, serve as serve_forever
from .types import ProcessingError

# Written next to the LMDB files so later commands decode keys the same way.
LAYOUT_FILE = "json-kv.json"


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _default_db_dir(input_file: Path) -> Path:
    return input_file.with_name(input_file.name + ".db")


def _save_layout(db_dir: Path, config: StoreConfig) -> None:
    layout = {"separator": config.separator, "index_width": config.index_width}
    (db_dir / LAYOUT_FILE).write_text(json.dumps(layout), encoding="utf-8")


def _load_config(db_dir: Path) -> StoreConfig:
    layout_path = db_dir / LAYOUT_FILE
    if not layout_path.exists():
        return StoreConfig()
    layout = json.loads(layout_path.read_text(encoding="utf-8"))
    return StoreConfig(separator=layout["separator"], index_width=layout["index_width"])


def _build_config(**values) -> StoreConfig:
    """Validate CLI options into a StoreConfig; validation warnings are logged."""
    validation = ErrorHandler().validate_config(values)
    if not validation.is_valid:
        raise click.BadParameter("; ".join(e.message for e in validation.errors))
    return StoreConfig(**values)


def _import_into(input_file: Path, db_dir: Path, config: StoreConfig) -> Optional[JSONStore]:
    """
    Import input_file into a fresh store at db_dir.

    Returns the open store, or None after deleting the partial store.
    """
    store = JSONStore.open_lmdb(db_dir, config)
    try:
        result = store.import_file(input_file)
    except ProcessingError as e:
        response = store.error_handler.handle_processing_error(e)
        store.close()
        shutil.rmtree(db_dir, ignore_errors=True)
        click.echo(f"❌ Import failed: {e}", err=True)
        click.echo(f"   • {response.suggested_action}", err=True)
        return None

    _save_layout(db_dir, config)
    click.echo(f"✅ Imported {result.records_written} records in "
               f"{result.batches_committed} batches into {db_dir}", err=True)
    return store


@click.group()
@click.version_option(version=__version__)
def main():
    """JSON KV - store a JSON document as sorted flat keys and query its subtrees."""
    pass


@main.command(name="import")
@click.argument('input_file', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--db', 'db_dir', type=click.Path(file_okay=False, path_type=Path),
              help='Store directory (default: INPUT_FILE.db)')
@click.option('--batch-bytes', default=DEFAULT_MAX_BATCH_BYTES, show_default=True,
              help='Write batch size limit in bytes')
@click.option('--index-width', default=0, show_default=True,
              help='Zero-pad array indices to this many digits (0 = plain decimal)')
@click.option('--force', is_flag=True, help='Replace an existing store')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose output')
def import_command(input_file: Path, db_dir: Optional[Path], batch_bytes: int,
                   index_width: int, force: bool, verbose: bool):
    """Import a JSON file into a new store."""
    _setup_logging(verbose)
    db_dir = db_dir or _default_db_dir(input_file)
    config = _build_config(max_batch_bytes=batch_bytes, index_width=index_width)

    if db_dir.exists():
        if not force:
            raise click.ClickException(f"Store {db_dir} already exists; use --force to replace it")
        shutil.rmtree(db_dir)

    store = _import_into(input_file, db_dir, config)
    if store is None:
        sys.exit(1)
    store.close()


@main.command()
@click.argument('db_dir', type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.argument('path', default='')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose output')
def query(db_dir: Path, path: str, verbose: bool):
    """Print the JSON at PATH ("a/b/0"; empty for the whole document)."""
    _setup_logging(verbose)
    store = JSONStore.open_lmdb(db_dir, _load_config(db_dir), readonly=True)
    try:
        store.query(path, StreamOutput(click.get_binary_stream('stdout'), flush=True))
    except ProcessingError as e:
        store.error_handler.handle_processing_error(e)
        click.echo(f"❌ Query failed: {e}", err=True)
        sys.exit(1)
    finally:
        store.close()


@main.command()
@click.argument('input_file', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--db', 'db_dir', type=click.Path(file_okay=False, path_type=Path),
              help='Store directory (default: INPUT_FILE.db)')
@click.option('--host', default='', help='Interface to bind (default: all)')
@click.option('--port', '-p', default=8080, show_default=True, help='Port to listen on')
@click.option('--batch-bytes', default=DEFAULT_MAX_BATCH_BYTES, show_default=True,
              help='Write batch size limit in bytes, used if an import is needed')
@click.option('--index-width', default=0, show_default=True,
              help='Array index width, used if an import is needed')
@click.option('--import-only', is_flag=True, help='Import if needed, then exit')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose output')
def serve(input_file: Path, db_dir: Optional[Path], host: str, port: int, batch_bytes: int,
          index_width: int, import_only: bool, verbose: bool):
    """Import INPUT_FILE unless its store exists, then serve GET /<path> queries."""
    _setup_logging(verbose)
    db_dir = db_dir or _default_db_dir(input_file)

    if db_dir.exists():
        store = JSONStore.open_lmdb(db_dir, _load_config(db_dir))
    else:
        config = _build_config(max_batch_bytes=batch_bytes, index_width=index_width)
        store = _import_into(input_file, db_dir, config)
        if store is None:
            sys.exit(1)

    try:
        if import_only:
            return
        server = make_server(store, host, port)
        click.echo(f"Listening on {host or '*'}:{server.server_address[1]}", err=True)
        serve_forever(store, server=server)
    finally:
        store.close()


if __name__ == '__main__':
    main()
