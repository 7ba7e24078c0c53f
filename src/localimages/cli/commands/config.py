"""Settings commands.

- config show: print current settings as JSON
- config set: change one setting and save it
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import click
from pydantic import ValidationError
from rich.syntax import Syntax

from localimages.cli import ui
from localimages.cli.console import get_console
from localimages.cli.options import parse_value, vault_option
from localimages.config import get_setting, set_setting
from localimages.errors import LocalImagesError
from localimages.plugin import open_plugin
from localimages.utils.text import format_error_message


@click.group()
def config() -> None:
    """Show or change settings."""


@config.command("show")
@vault_option
@click.argument("key", required=False)
def config_show(vault: Path, key: str | None) -> None:
    """Show all settings, or the value of KEY (dot path, e.g. log.level)."""

    async def _show() -> object:
        async with open_plugin(vault) as plugin:
            if key is None:
                return plugin.settings.model_dump(mode="json", by_alias=True)
            value = get_setting(plugin.settings, key)
            if hasattr(value, "model_dump"):
                return value.model_dump(mode="json", by_alias=True)
            return value

    try:
        value = asyncio.run(_show())
    except KeyError:
        ui.error(f"Unknown setting: {key}")
        raise SystemExit(1)
    except LocalImagesError as e:
        ui.error("Cannot load settings", detail=format_error_message(e))
        raise SystemExit(1)

    console = get_console()
    if isinstance(value, (dict, list)):
        output = json.dumps(value, indent=2, ensure_ascii=False)
        console.print(Syntax(output, "json", theme="monokai", line_numbers=False))
    else:
        console.print(str(value), markup=False)


@config.command("set")
@vault_option
@click.argument("key")
@click.argument("value")
def config_set(vault: Path, key: str, value: str) -> None:
    """Set KEY (dot path, camelCase or snake_case) to VALUE and save."""
    parsed = parse_value(value)

    async def _set() -> None:
        async with open_plugin(vault) as plugin:
            set_setting(plugin.settings, key, parsed)
            await plugin.save()
            plugin.refresh_shortcut()

    try:
        asyncio.run(_set())
    except KeyError:
        ui.error(f"Unknown setting: {key}")
        raise SystemExit(1)
    except ValidationError as ve:
        ui.error(f"Invalid value for '{key}'")
        for err in ve.errors():
            loc = ".".join(str(x) for x in err["loc"])
            ui.info(f"{loc}: {err['msg']}")
        raise SystemExit(1)
    except LocalImagesError as e:
        ui.error("Cannot save settings", detail=format_error_message(e))
        raise SystemExit(1)

    ui.success(f"Set {key} = {parsed}")
