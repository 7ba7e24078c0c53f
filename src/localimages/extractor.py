"""Find image references in Markdown text.

Recognized forms:
- inline images: ``![alt](url "title")`` and ``![alt](<url with spaces>)``
- reference images: ``![alt][label]``, ``![label][]``, ``![label]`` together
  with their definition ``[label]: url "title"``
- HTML ``<img src="...">`` tags (optional)

Fenced and indented code blocks, inline code spans and HTML comments are
verbatim regions: nothing inside them is ever reported.
"""

from __future__ import annotations

import html
import re
from bisect import bisect_right
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Literal
from urllib.parse import urlparse

from localimages.constants import REMOTE_SCHEMES

ReferenceKind = Literal["inline", "reference", "html"]

# Backslash escapes allowed in CommonMark (ASCII punctuation)
_ESCAPE_PATTERN = re.compile(r"\\([!-/:-@\[-`{-~])")

_FENCE_OPEN_PATTERN = re.compile(r"^ {0,3}(?P<fence>`{3,}|~{3,})(?P<info>[^\n]*)$")
_FENCE_CLOSE_PATTERN = re.compile(r"^ {0,3}(?P<fence>`{3,}|~{3,})[ \t]*$")
_LIST_ITEM_PATTERN = re.compile(r"^ {0,3}(?:[-*+]|\d{1,9}[.)])(?:[ \t]|$)")

# Inline verbatim regions, scanned only outside fenced blocks
_VERBATIM_INLINE_PATTERN = re.compile(
    r"(?P<comment><!--.*?-->)"
    r"|(?<![`\\])(?P<ticks>`+)(?!`)(?:(?!\n[ \t\r]*\n).)+?(?<!`)(?P=ticks)(?!`)",
    re.DOTALL,
)

_INLINE_IMAGE_PATTERN = re.compile(
    r"(?<!\\)!\[(?P<alt>(?:\\.|[^\[\]\\]|\[(?:\\.|[^\[\]\\])*\])*)\]"
    r"\([ \t]*(?:\r?\n)?[ \t]*"
    r"(?:<(?P<angle>[^<>\n]*)>|(?P<bare>(?:\\.|[^\s()\\]|\((?:\\.|[^\s()\\])*\))+))"
    r"(?:(?:[ \t]+|[ \t]*\r?\n[ \t]*)(?P<title>\"(?:\\.|[^\"\\])*\"|'(?:\\.|[^'\\])*'|\((?:\\.|[^()\\])*\)))?"
    r"[ \t]*(?:\r?\n)?[ \t]*\)"
)

_REFERENCE_IMAGE_PATTERN = re.compile(
    r"(?<!\\)!\[(?P<alt>(?:\\.|[^\[\]\\])*)\]"
    r"(?:\[(?P<label>(?:\\.|[^\[\]\\])*)\])?"
)

_DEFINITION_PATTERN = re.compile(
    r"^ {0,3}\[(?P<label>(?:\\.|[^\[\]\\])+)\]:[ \t]*"
    r"(?:<(?P<angle>[^<>\n]*)>|(?P<bare>\S+))"
    r"(?:[ \t]+(?P<title>\"[^\"\n]*\"|'[^'\n]*'|\([^()\n]*\)))?[ \t]*\r?$",
    re.MULTILINE,
)

_HTML_IMAGE_PATTERN = re.compile(
    r"<img\b[^>]*?\bsrc\s*=\s*"
    r"(?:\"(?P<dq>[^\"]*)\"|'(?P<sq>[^']*)'|(?P<uq>[^\s\"'=<>`]+))"
    r"[^>]*>",
    re.IGNORECASE,
)

_HTML_ALT_PATTERN = re.compile(
    r"\balt\s*=\s*(?:\"([^\"]*)\"|'([^']*)')", re.IGNORECASE
)


@dataclass(frozen=True)
class ImageReference:
    """One image reference found in a document.

    ``start``/``end`` delimit the link target text (the URL itself, without
    angle brackets or quotes) in the original document. Replacing exactly
    that span keeps alt text, titles and surrounding syntax intact.
    """

    start: int
    end: int
    raw: str  # target text exactly as written
    url: str  # unescaped, absolute form used for fetching and as registry key
    kind: ReferenceKind
    alt: str = ""
    title: str | None = None
    label: str | None = None
    delimiter: str = ""  # "<" for <url>, '"' or "'" for quoted HTML attributes
    remote: bool = True

    @property
    def span(self) -> tuple[int, int]:
        return self.start, self.end


def is_remote_url(url: str) -> bool:
    """Return True for http(s) and protocol-relative URLs."""
    url = url.strip()
    if url.startswith("//"):
        return len(url) > 2 and url[2] != "/"
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme.lower() in REMOTE_SCHEMES and bool(parsed.netloc)


def normalize_url(url: str) -> str:
    """Return the fetchable form of a remote URL."""
    url = url.strip()
    if url.startswith("//"):
        return f"https:{url}"
    return url


def normalize_label(label: str) -> str:
    """Reference labels match case-insensitively with collapsed whitespace."""
    return " ".join(label.split()).casefold()


def _unescape_markdown(text: str) -> str:
    return _ESCAPE_PATTERN.sub(r"\1", text)


def find_fenced_blocks(text: str) -> list[tuple[int, int]]:
    """Return (start, end) offsets of fenced code blocks, fences included.

    A fence closes only on a line made of the same character, at least as
    long as the opening run. An unclosed fence extends to the end of text.
    """
    blocks: list[tuple[int, int]] = []
    open_char: str | None = None
    open_len = 0
    block_start = 0
    offset = 0

    for line in text.splitlines(keepends=True):
        content = line.rstrip("\r\n")
        if open_char is None:
            match = _FENCE_OPEN_PATTERN.match(content)
            # Backtick fences cannot carry backticks in their info string
            if match and not (match.group("fence")[0] == "`" and "`" in match.group("info")):
                open_char = match.group("fence")[0]
                open_len = len(match.group("fence"))
                block_start = offset
        else:
            match = _FENCE_CLOSE_PATTERN.match(content)
            if (
                match
                and match.group("fence")[0] == open_char
                and len(match.group("fence")) >= open_len
            ):
                blocks.append((block_start, offset + len(line)))
                open_char = None
        offset += len(line)

    if open_char is not None:
        blocks.append((block_start, len(text)))
    return blocks


def _indent_width(line: str) -> int:
    expanded = line.expandtabs(4)
    return len(expanded) - len(expanded.lstrip(" "))


def find_indented_blocks(
    text: str, fenced: list[tuple[int, int]] | None = None
) -> list[tuple[int, int]]:
    """Return (start, end) offsets of indented code blocks.

    A block opens on a line indented by four or more columns that follows a
    blank line (or starts the text) and runs through the indented and blank
    lines after it; trailing blank lines are left out. Indented lines that
    continue a list item are not code.

    Args:
        text: Markdown document
        fenced: Fenced blocks already found in ``text``; lines inside them
            are never part of an indented block
    """
    fenced_index = _RegionIndex(fenced if fenced is not None else find_fenced_blocks(text))
    blocks: list[tuple[int, int]] = []
    block_start: int | None = None
    block_end = 0
    previous_blank = True
    in_list = False
    offset = 0

    for line in text.splitlines(keepends=True):
        content = line.rstrip("\r\n")
        blank = not content.strip()
        indented = not blank and _indent_width(content) >= 4

        if fenced_index.contains(offset):
            if block_start is not None:
                blocks.append((block_start, block_end))
                block_start = None
            previous_blank = True
            in_list = False
            offset += len(line)
            continue

        if block_start is not None:
            if indented:
                block_end = offset + len(line)
            elif not blank:
                blocks.append((block_start, block_end))
                block_start = None
        elif indented and previous_blank and not in_list:
            block_start = offset
            block_end = offset + len(line)

        if not blank and not indented:
            in_list = bool(_LIST_ITEM_PATTERN.match(content))
        previous_blank = blank
        offset += len(line)

    if block_start is not None:
        blocks.append((block_start, block_end))
    return blocks


def find_verbatim_regions(text: str) -> list[tuple[int, int]]:
    """Return sorted, non-overlapping regions whose content must not change.

    Covers fenced and indented code blocks, inline code spans and HTML
    comments.
    """
    fenced = find_fenced_blocks(text)
    blocks = sorted([*fenced, *find_indented_blocks(text, fenced)])
    regions: list[tuple[int, int]] = list(blocks)

    gap_start = 0
    for block_start, block_end in [*blocks, (len(text), len(text))]:
        for match in _VERBATIM_INLINE_PATTERN.finditer(text, gap_start, block_start):
            regions.append(match.span())
        gap_start = block_end

    regions.sort()
    return regions


class _RegionIndex:
    """Fast membership test for sorted, non-overlapping regions."""

    def __init__(self, regions: list[tuple[int, int]]) -> None:
        self._starts = [start for start, _ in regions]
        self._regions = regions

    def contains(self, pos: int) -> bool:
        idx = bisect_right(self._starts, pos) - 1
        if idx < 0:
            return False
        start, end = self._regions[idx]
        return start <= pos < end

    def overlaps(self, start: int, end: int) -> bool:
        if self.contains(start):
            return True
        idx = bisect_right(self._starts, start)
        return idx < len(self._starts) and self._starts[idx] < end


def _target_group(match: re.Match[str]) -> tuple[str, int, int, str]:
    """Return (raw target, start, end, delimiter) for angle/bare groups."""
    if match.group("angle") is not None:
        return match.group("angle"), match.start("angle"), match.end("angle"), "<"
    return match.group("bare"), match.start("bare"), match.end("bare"), ""


def _strip_title(title: str | None) -> str | None:
    if not title:
        return None
    return _unescape_markdown(title[1:-1])


def _make_reference(
    raw: str,
    start: int,
    end: int,
    kind: ReferenceKind,
    *,
    alt: str = "",
    title: str | None = None,
    label: str | None = None,
    delimiter: str = "",
) -> ImageReference:
    if kind == "html":
        unescaped = html.unescape(raw).strip()
    else:
        unescaped = _unescape_markdown(raw).strip()
    remote = is_remote_url(unescaped)
    return ImageReference(
        start=start,
        end=end,
        raw=raw,
        url=normalize_url(unescaped) if remote else unescaped,
        kind=kind,
        alt=alt,
        title=title,
        label=label,
        delimiter=delimiter,
        remote=remote,
    )


def _collect_candidates(
    text: str, verbatim: _RegionIndex, include_html: bool
) -> list[ImageReference]:
    candidates: list[ImageReference] = []
    inline_spans: list[tuple[int, int]] = []

    for match in _INLINE_IMAGE_PATTERN.finditer(text):
        if verbatim.contains(match.start()):
            continue
        raw, start, end, delimiter = _target_group(match)
        if verbatim.overlaps(start, end):
            continue
        inline_spans.append(match.span())
        candidates.append(
            _make_reference(
                raw,
                start,
                end,
                "inline",
                alt=_unescape_markdown(match.group("alt")),
                title=_strip_title(match.group("title")),
                delimiter=delimiter,
            )
        )

    inline_index = _RegionIndex(sorted(inline_spans))
    used_labels: dict[str, str] = {}
    for match in _REFERENCE_IMAGE_PATTERN.finditer(text):
        if verbatim.contains(match.start()) or inline_index.contains(match.start()):
            continue
        label = match.group("label")
        if label is None and text.startswith("(", match.end()):
            continue  # malformed inline image, not a reference
        key = normalize_label(label or match.group("alt"))
        if key:
            used_labels.setdefault(key, _unescape_markdown(match.group("alt")))

    seen_definitions: set[str] = set()
    for match in _DEFINITION_PATTERN.finditer(text):
        if verbatim.contains(match.start()):
            continue
        key = normalize_label(match.group("label"))
        if key in seen_definitions:
            continue  # first definition wins
        seen_definitions.add(key)
        if key not in used_labels:
            continue  # plain link definition, not an image
        raw, start, end, delimiter = _target_group(match)
        candidates.append(
            _make_reference(
                raw,
                start,
                end,
                "reference",
                alt=used_labels[key],
                title=_strip_title(match.group("title")),
                label=match.group("label"),
                delimiter=delimiter,
            )
        )

    if include_html:
        for match in _HTML_IMAGE_PATTERN.finditer(text):
            if verbatim.contains(match.start()):
                continue
            for group, delimiter in (("dq", '"'), ("sq", "'"), ("uq", "")):
                if match.group(group) is not None:
                    break
            alt_match = _HTML_ALT_PATTERN.search(match.group(0))
            alt = ""
            if alt_match:
                alt = html.unescape(alt_match.group(1) or alt_match.group(2) or "")
            candidates.append(
                _make_reference(
                    match.group(group),
                    match.start(group),
                    match.end(group),
                    "html",
                    alt=alt,
                    delimiter=delimiter,
                )
            )

    return candidates


def iter_references(
    text: str,
    include_html: bool = True,
    include_local: bool = False,
) -> Iterator[ImageReference]:
    """Yield image references in document order.

    The result depends only on the arguments, so the same text can be
    scanned any number of times with identical output.

    Args:
        text: Markdown document
        include_html: Also report ``<img src>`` tags
        include_local: Also report references that are not remote URLs

    Yields:
        Non-overlapping ImageReference records sorted by start offset
    """
    verbatim = _RegionIndex(find_verbatim_regions(text))
    candidates = _collect_candidates(text, verbatim, include_html)
    candidates.sort(key=lambda ref: (ref.start, ref.end))

    last_end = -1
    for ref in candidates:
        if ref.start < last_end:
            continue
        last_end = ref.end
        if not ref.url:
            continue
        if ref.remote or include_local:
            yield ref


def extract_references(
    text: str,
    include_html: bool = True,
    include_local: bool = False,
) -> list[ImageReference]:
    """List form of iter_references()."""
    return list(
        iter_references(text, include_html=include_html, include_local=include_local)
    )
