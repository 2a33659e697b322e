from __future__ import annotations

import json
from pathlib import Path

import typer

from . import app as server_app
from .client import KVClient, Reply
from .config import Settings
from .errors import ServerError
from .persistence import SnapshotManager

app = typer.Typer(help="Snapshot-backed key-value server")

snapshot_app = typer.Typer(help="Inspect the snapshot file")
app.add_typer(snapshot_app, name="snapshot")


@app.command()
def serve(
    host: str | None = typer.Option(None, help="Address to bind"),
    port: int | None = typer.Option(None, help="Port to bind"),
    snapshot: Path | None = typer.Option(None, help="Snapshot file"),
    responses_dir: Path | None = typer.Option(
        None, help="Directory holding the response body files"
    ),
    lenient_snapshot: bool = typer.Option(
        False, help="Start empty instead of failing on a corrupt snapshot"
    ),
    verbose: bool = typer.Option(False, help="Print effective settings"),
) -> None:
    """Run the key-value server."""
    overrides: dict[str, object] = {}
    if host is not None:
        overrides["host"] = host
    if port is not None:
        overrides["port"] = port
    if snapshot is not None:
        overrides["snapshot_path"] = str(snapshot)
    if responses_dir is not None:
        overrides["responses_dir"] = str(responses_dir)
    if lenient_snapshot:
        overrides["snapshot_strict"] = False
    settings = Settings(**overrides)
    if verbose:
        typer.echo(settings.model_dump_json(indent=2))
    try:
        server_app.run(settings=settings)
    except ServerError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def _print_reply(reply: Reply | None) -> None:
    if reply is None:
        typer.echo("No response from server", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"{reply.status} {reply.reason}")
    typer.echo(reply.body)
    if reply.status != 200:
        raise typer.Exit(code=1)


def _client(host: str | None, port: int | None) -> KVClient:
    settings = Settings()
    return KVClient(host or settings.host, port if port is not None else settings.port)


@app.command()
def get(
    key: str,
    host: str | None = typer.Option(None, help="Server address"),
    port: int | None = typer.Option(None, help="Server port"),
) -> None:
    """Fetch the value stored under KEY."""
    _print_reply(_client(host, port).get(key))


@app.command("set")
def set_(
    key: str,
    value: str,
    host: str | None = typer.Option(None, help="Server address"),
    port: int | None = typer.Option(None, help="Server port"),
) -> None:
    """Store VALUE under KEY."""
    _print_reply(_client(host, port).set(key, value))


@snapshot_app.command("show")
def show_snapshot(
    path: Path | None = typer.Argument(None, help="Snapshot file (defaults to settings)"),
) -> None:
    """Print the snapshot contents as sorted JSON."""
    snapshot_path = path or Path(Settings().snapshot_path)
    try:
        data = SnapshotManager(snapshot_path, strict=True).load()
    except ServerError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(json.dumps(data, indent=2, sort_keys=True))


if __name__ == "__main__":  # pragma: no cover
    app()
