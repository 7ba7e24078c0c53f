"""Single-pass text rewriting from spans computed on the original text."""

from __future__ import annotations

import html
import re
from collections.abc import Iterable
from dataclasses import dataclass

from localimages.extractor import ImageReference

# Characters that force a Markdown link target into <...> form
_NEEDS_ANGLE_BRACKETS = re.compile(r"[\s()<>]")


@dataclass(frozen=True)
class Edit:
    """Replace ``text[start:end]`` with ``replacement``."""

    start: int
    end: int
    replacement: str


def rewrite(text: str, edits: Iterable[Edit]) -> str:
    """Apply edits to ``text`` in one left-to-right pass.

    Every span refers to the original text. Regions outside the spans are
    copied verbatim, and the result is the same whatever order the edits
    are passed in.

    Args:
        text: Original document
        edits: Non-overlapping edits

    Returns:
        Rewritten text

    Raises:
        ValueError: If an edit is out of bounds, inverted or overlaps another
    """
    ordered = sorted(edits, key=lambda e: (e.start, e.end))
    parts: list[str] = []
    cursor = 0
    for edit in ordered:
        if edit.start < 0 or edit.end > len(text) or edit.start > edit.end:
            raise ValueError(
                f"Edit span ({edit.start}, {edit.end}) is invalid for text of length {len(text)}"
            )
        if edit.start < cursor:
            raise ValueError(f"Edit at ({edit.start}, {edit.end}) overlaps a previous edit")
        parts.append(text[cursor : edit.start])
        parts.append(edit.replacement)
        cursor = edit.end
    parts.append(text[cursor:])
    return "".join(parts)


def format_link_target(reference: ImageReference, target: str) -> str:
    """Render ``target`` so it fits the reference's original syntax.

    The replacement goes where the remote URL was, so delimiters that
    surround the span (``<`` ``>`` or HTML quotes) stay in place.
    """
    if reference.kind == "html":
        escaped = html.escape(target, quote=True)
        if not reference.delimiter and re.search(r"[\s\"'=<>`]", target):
            return f'"{escaped}"'
        return escaped
    if reference.delimiter == "<":
        return target.replace("<", "%3C").replace(">", "%3E")
    if _NEEDS_ANGLE_BRACKETS.search(target):
        return "<" + target.replace("<", "%3C").replace(">", "%3E") + ">"
    return target


def build_edit(reference: ImageReference, target: str) -> Edit:
    """Edit that points ``reference`` at ``target``."""
    return Edit(reference.start, reference.end, format_link_target(reference, target))
