"""flatkv CLI — inspect and edit flat-file stores.

Commands:
    flatkv init                    create flatkv.toml
    flatkv get NAME KEY            print a value (--type, --array)
    flatkv set NAME KEY VALUE...   store a value; several values store an array
    flatkv rm NAME KEY...          remove keys
    flatkv clear NAME              remove every key
    flatkv keys NAME               list keys
    flatkv dump NAME               print the file content
    flatkv import NAME FILE        merge key=value lines (use - for stdin)
"""

from __future__ import annotations

import contextlib
import logging
from pathlib import Path
from typing import TYPE_CHECKING

import click

from flatkv.codec import KINDS, kind_named
from flatkv.config import FlatKVConfig, init_config, load_config
from flatkv.errors import FlatKVError
from flatkv.store import Store, open_store

if TYPE_CHECKING:
    from collections.abc import Iterator
    from typing import TextIO

_KIND_CHOICE = click.Choice(sorted(KINDS), case_sensitive=False)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@contextlib.contextmanager
def _errors() -> Iterator[None]:
    try:
        yield
    except FlatKVError as exc:
        raise click.ClickException(str(exc)) from exc


def _load_cfg(ctx: click.Context) -> FlatKVConfig:
    opts = ctx.obj or {}
    with _errors():
        cfg = load_config(opts.get("root"))
    level = (opts.get("log_level") or cfg.logging.level).upper()
    if level not in logging.getLevelNamesMapping():
        raise click.ClickException(f"Unknown log level: {level}")
    logging.basicConfig(level=level, format="%(asctime)s %(name)s %(message)s")
    return cfg


def _open(ctx: click.Context, name: str) -> Store:
    cfg = _load_cfg(ctx)
    with _errors():
        return open_store(name, cfg)


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="flatkv")
@click.option(
    "--root",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Project root (default: search upward for flatkv.toml)",
)
@click.option("--log-level", default=None, help="Override [logging] level, e.g. DEBUG")
@click.pass_context
def cli(ctx: click.Context, root: Path | None, log_level: str | None) -> None:
    """flatkv — flat-file key-value stores."""
    ctx.ensure_object(dict)
    ctx.obj["root"] = root
    ctx.obj["log_level"] = log_level


# ---------------------------------------------------------------------------
# flatkv init
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--dir", "root", default=".", show_default=True, help="Project root")
@click.option("--data-dir", default=None, help="Directory for store files, relative to root")
def init(root: str, data_dir: str | None) -> None:
    """Create flatkv.toml in the project root."""
    root_path = Path(root).resolve()
    try:
        config_path = init_config(root_path, data_dir=data_dir)
        click.echo(f"Created {config_path}")
    except FileExistsError:
        click.echo("flatkv.toml already exists — skipping init")

    with _errors():
        cfg = load_config(root_path)
    click.echo(f"Data dir : {cfg.data_dir}")


# ---------------------------------------------------------------------------
# flatkv get / set
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("name")
@click.argument("key")
@click.option("--type", "-t", "kind_name", type=_KIND_CHOICE, default="text", show_default=True)
@click.option("--array", "-a", "as_array", is_flag=True, help="Read the value as an array")
@click.pass_context
def get(ctx: click.Context, name: str, key: str, kind_name: str, as_array: bool) -> None:
    """Print the value of KEY, one line per element for arrays."""
    store = _open(ctx, name)
    kind = kind_named(kind_name)
    with _errors():
        value = store.get_array(key, kind) if as_array else store.get(key, kind)
    if value is None:
        click.echo(f"Key not found: {key}", err=True)
        raise SystemExit(1)
    for item in value if as_array else [value]:
        click.echo(kind.format(item))


@cli.command(name="set")
@click.argument("name")
@click.argument("key")
@click.argument("values", nargs=-1, required=True)
@click.option("--type", "-t", "kind_name", type=_KIND_CHOICE, default="text", show_default=True)
@click.option("--array", "-a", "as_array", is_flag=True, help="Store a single VALUE as a one-element array")
@click.pass_context
def set_(
    ctx: click.Context, name: str, key: str, values: tuple[str, ...], kind_name: str, as_array: bool,
) -> None:
    """Store VALUES under KEY; more than one value stores an array."""
    store = _open(ctx, name)
    kind = kind_named(kind_name)
    try:
        parsed = [kind.parse(v) for v in values]
    except ValueError as exc:
        raise click.ClickException(f"{key}: {exc}") from exc
    with _errors():
        if as_array or len(parsed) > 1:
            store.set_array(key, parsed, kind)
        else:
            store.set(key, parsed[0], kind)
        store.save()


# ---------------------------------------------------------------------------
# flatkv rm / clear
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("name")
@click.argument("keys", nargs=-1, required=True)
@click.pass_context
def rm(ctx: click.Context, name: str, keys: tuple[str, ...]) -> None:
    """Remove KEYS (missing keys are ignored)."""
    store = _open(ctx, name)
    missing = [k for k in keys if k not in store]
    with _errors():
        store.remove_all(keys)
        store.save()
    for key in missing:
        click.echo(f"  not found: {key}", err=True)
    click.echo(f"Removed {len(keys) - len(missing)} key(s)")


@cli.command()
@click.argument("name")
@click.confirmation_option(prompt="Remove every key?")
@click.pass_context
def clear(ctx: click.Context, name: str) -> None:
    """Remove every key from the store."""
    store = _open(ctx, name)
    with _errors():
        store.clear()
        store.save()
    click.echo(f"Cleared {store.path}")


# ---------------------------------------------------------------------------
# flatkv keys / dump / import
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("name")
@click.pass_context
def keys(ctx: click.Context, name: str) -> None:
    """List keys in sorted order."""
    store = _open(ctx, name)
    if not len(store):
        click.echo("(empty)")
        return
    for key in store:
        click.echo(key)


@cli.command()
@click.argument("name")
@click.pass_context
def dump(ctx: click.Context, name: str) -> None:
    """Print the store exactly as it is written to disk."""
    store = _open(ctx, name)
    click.echo(store.to_text(), nl=False)


@cli.command(name="import")
@click.argument("name")
@click.argument("source", type=click.File("r", encoding="utf-8"))
@click.pass_context
def import_(ctx: click.Context, name: str, source: TextIO) -> None:
    """Merge key=value lines from SOURCE (values already escaped)."""
    store = _open(ctx, name)
    text = source.read()
    with _errors():
        before = set(store.keys())
        store.update_from_text(text)
        store.save()
    added = len(set(store.keys()) - before)
    click.echo(f"Imported into {store.path}: {added} new, {len(store)} total")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    cli(standalone_mode=True)


if __name__ == "__main__":
    main()
