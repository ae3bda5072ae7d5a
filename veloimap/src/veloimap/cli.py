"""Command-line probes for an IMAP account configuration.

What:
  Provide a Typer application with ``probe`` (connect, authenticate, count
  folders), ``folders`` (list folders with counts and special use) and
  ``status`` (UID epoch and counters of one folder).

Why:
  Operators need to check account settings (port, security mode, OAuth token)
  without starting the whole mail application. Running the same code path the
  application uses makes a successful probe meaningful.

How:
  Load :class:`~veloimap.config.ImapConfig` through
  :func:`~veloimap.config.load_imap_config`, open a session with
  :func:`~veloimap.imap.connect`, print the result on stdout (JSON for data
  commands) and map every core error to exit code ``1``.

Interfaces:
  ``app`` (Typer application), ``probe``, ``folders``, ``status``, ``main``.

Invariants & Safety:
  - Exit codes follow shell expectations (``0`` success, ``1`` failure).
  - Secrets are never echoed; errors print the core message only.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import typer

from .config import load_imap_config
from .core.folders import syncable_folders
from .errors import ImapCoreError, describe
from .imap import connect, test_connection


app = typer.Typer(help="IMAP account probes")

LOGGER = logging.getLogger("veloimap.cli")

CONFIG_OPTION = typer.Option(
    None,
    "--config",
    "-c",
    help="Path to the IMAP YAML configuration (defaults to $VELOIMAP_CONFIG_PATH or ./imap.yaml)",
)


def _fail(exc: ImapCoreError) -> typer.Exit:
    LOGGER.error("command_failed kind=%s context=%s", exc.kind.value, exc.context)
    typer.echo(describe(exc), err=True)
    return typer.Exit(code=1)


@app.command("probe")
def probe(config_path: Optional[Path] = CONFIG_OPTION) -> None:
    """Connect, authenticate and list folders once."""

    try:
        config = load_imap_config(config_path)
        summary = test_connection(config)
    except ImapCoreError as exc:
        raise _fail(exc) from exc
    typer.echo(summary)


@app.command("folders")
def folders(
    config_path: Optional[Path] = CONFIG_OPTION,
    *,
    all_folders: bool = typer.Option(False, "--all", help="Include provider container folders"),
) -> None:
    """Print every folder as a JSON array."""

    try:
        config = load_imap_config(config_path)
        with connect(config) as session:
            found = session.list_folders()
    except ImapCoreError as exc:
        raise _fail(exc) from exc
    if not all_folders:
        found = syncable_folders(found)
    typer.echo(json.dumps([folder.to_dict() for folder in found], indent=2))


@app.command("status")
def status(
    folder: str = typer.Argument(..., help="Folder display path, e.g. INBOX"),
    config_path: Optional[Path] = CONFIG_OPTION,
) -> None:
    """Print the STATUS snapshot of FOLDER as JSON."""

    try:
        config = load_imap_config(config_path)
        with connect(config) as session:
            snapshot = session.get_folder_status(folder)
    except ImapCoreError as exc:
        raise _fail(exc) from exc
    typer.echo(json.dumps(snapshot.to_dict(), indent=2))


def main() -> None:
    """Execute the Typer application entry point."""

    app()


if __name__ == "__main__":  # pragma: no cover
    main()
