"""localimages - download remote images referenced in Markdown notes."""

from __future__ import annotations

__version__ = "0.3.0"
