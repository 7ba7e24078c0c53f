"""CLI command groups for localimages.

- config: show and change settings
- registry: inspect downloaded images
"""

from __future__ import annotations

from localimages.cli.commands.config import config
from localimages.cli.commands.registry import registry

__all__ = ["config", "registry"]
