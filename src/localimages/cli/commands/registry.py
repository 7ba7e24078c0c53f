"""Registry inspection commands.

- registry list: every recorded URL with its file and current status
- registry check: report entries whose files are gone
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import click
from rich.table import Table

from localimages.cli import ui
from localimages.cli.console import get_console
from localimages.cli.options import vault_option
from localimages.errors import LocalImagesError
from localimages.plugin import open_plugin
from localimages.utils.text import format_error_message


async def _collect(vault: Path) -> list[dict[str, object]]:
    rows: list[dict[str, object]] = []
    async with open_plugin(vault) as plugin:
        registry = plugin.registry
        assert registry is not None
        strict = plugin.settings.verify_integrity
        for url, meta in registry.items():
            rows.append(
                {
                    "url": url,
                    "filePath": meta.file_path,
                    "size": meta.size,
                    "valid": registry.validate(meta, strict=strict),
                }
            )
    return rows


def _load_rows(vault: Path) -> list[dict[str, object]]:
    try:
        return asyncio.run(_collect(vault))
    except LocalImagesError as e:
        ui.error("Cannot load registry", detail=format_error_message(e))
        raise SystemExit(1)


@click.group()
def registry() -> None:
    """Inspect the downloaded-image registry."""


@registry.command("list")
@vault_option
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def registry_list(vault: Path, as_json: bool) -> None:
    """List registered URLs and their local files."""
    rows = _load_rows(vault)
    console = get_console()

    if as_json:
        console.print_json(json.dumps(rows, ensure_ascii=False))
        return

    if not rows:
        ui.info("Registry is empty")
        return

    table = Table(show_header=True)
    table.add_column("URL", style="cyan", overflow="fold")
    table.add_column("File", style="green", overflow="fold")
    table.add_column("Status")
    for row in rows:
        status = f"[green]{ui.MARK_SUCCESS} ok[/]" if row["valid"] else f"[red]{ui.MARK_ERROR} missing[/]"
        table.add_row(str(row["url"]), str(row["filePath"]), status)
    console.print(table)


@registry.command("check")
@vault_option
def registry_check(vault: Path) -> None:
    """Report entries whose files no longer exist. Exits 1 if any."""
    rows = _load_rows(vault)
    missing = [row for row in rows if not row["valid"]]
    if not missing:
        ui.success(f"All {len(rows)} registered file(s) present")
        return
    for row in missing:
        ui.warning(str(row["url"]), detail=f"missing: {row['filePath']}")
    ui.error(f"{len(missing)} of {len(rows)} registered file(s) missing")
    raise SystemExit(1)
