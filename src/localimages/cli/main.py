"""Command-line interface for localimages."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import click
from dotenv import load_dotenv

# Load .env from the current directory (LOCALIMAGES_VAULT, LOCALIMAGES_LOG_DIR)
load_dotenv()

from loguru import logger

from localimages.cli import ui
from localimages.cli.commands import config, registry
from localimages.cli.console import get_console
from localimages.cli.logging_config import print_version, setup_logging
from localimages.cli.options import ConsoleNotifier, vault_option
from localimages.errors import DocumentIOError, LocalImagesError
from localimages.plugin import LocalImagesPlugin, open_plugin
from localimages.processor import ProcessReport
from localimages.utils.text import format_error_message


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--version",
    "-v",
    is_flag=True,
    callback=print_version,
    expose_value=False,
    is_eager=True,
    help="Show version and exit.",
)
def app() -> None:
    """Download remote images referenced by Markdown notes into the vault."""


def _note_path(plugin: LocalImagesPlugin, note: str) -> str:
    """Turn a command-line note argument into a vault-relative path.

    Existing filesystem paths (absolute or relative to the working
    directory) are mapped into the vault; anything else is taken as
    already vault-relative.
    """
    candidate = Path(note).expanduser()
    if candidate.is_absolute() or candidate.exists():
        try:
            return plugin.vault.relative(candidate)
        except ValueError:
            raise click.BadParameter(
                f"{note} is not inside the vault {plugin.vault.root}", param_hint="NOTE"
            )
    return note


def _print_report(report: ProcessReport) -> None:
    if report.status == "nothing_to_do":
        ui.info(f"{report.document_path}: no remote images")
        return
    line = (
        f"{report.document_path}: {report.downloaded} downloaded, "
        f"{report.reused} reused, {report.failed} failed"
    )
    if report.failed:
        ui.warning(line)
    else:
        ui.success(line)
    for url, message in report.failures.items():
        ui.warning(ui.truncate(url, 100), detail=message)
    if report.persistence_error is not None:
        ui.error(
            "Registry could not be saved",
            detail=format_error_message(report.persistence_error),
        )


async def _process_notes(vault: Path, notes: tuple[str, ...], verbose: bool) -> int:
    failures = 0
    async with open_plugin(vault, notifier=ConsoleNotifier()) as plugin:
        setup_logging(verbose=verbose, log_config=plugin.settings.log)
        for note in notes:
            document_path = _note_path(plugin, note)
            try:
                report = await plugin.process_active(document_path)
            except DocumentIOError as e:
                failures += 1
                ui.error(f"{document_path}", detail=format_error_message(e))
                continue
            if report is None:
                failures += 1
                ui.error(f"{note} is not a Markdown note")
                continue
            _print_report(report)
    return failures


@app.command("process")
@vault_option
@click.option("--verbose", is_flag=True, help="Show progress messages on the console.")
@click.argument("notes", nargs=-1, required=True)
def process(vault: Path, verbose: bool, notes: tuple[str, ...]) -> None:
    """Download the remote images of each NOTE and rewrite its links."""
    setup_logging(verbose=verbose)
    ui.title(f"Processing {len(notes)} note(s)", console=get_console())

    try:
        failures = asyncio.run(_process_notes(vault, notes, verbose))
    except LocalImagesError as e:
        logger.debug(f"Processing aborted: {e}")
        ui.error("Processing aborted", detail=format_error_message(e))
        sys.exit(1)

    if failures:
        sys.exit(1)


app.add_command(config)
app.add_command(registry)


if __name__ == "__main__":
    app()
