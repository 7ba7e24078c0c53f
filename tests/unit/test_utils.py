"""Unit tests for MIME, path and text helpers."""

from __future__ import annotations

import pytest

from localimages.utils.mime import (
    clean_content_type,
    detect_image_extension,
    get_extension_from_mime,
    get_extension_from_url,
    is_image_mime,
    normalize_image_extension,
)
from localimages.utils.paths import (
    filename_from_url,
    join_vault_path,
    relative_link,
    sanitize_filename,
    split_name,
    vault_parent,
)
from localimages.utils.text import format_error_message
from tests.samples import GIF_BYTES, JPEG_BYTES, PNG_BYTES


class TestMime:
    def test_extension_from_mime(self) -> None:
        assert get_extension_from_mime("image/jpeg") == ".jpg"
        assert get_extension_from_mime("IMAGE/PNG; charset=binary") == ".png"
        assert get_extension_from_mime("text/html") is None
        assert get_extension_from_mime(None, default=".bin") == ".bin"

    def test_clean_content_type(self) -> None:
        assert clean_content_type("image/svg+xml; charset=utf-8") == "image/svg+xml"
        assert clean_content_type(None) == ""

    def test_is_image_mime(self) -> None:
        assert is_image_mime("image/webp")
        assert not is_image_mime("text/html; charset=utf-8")

    def test_extension_from_url(self) -> None:
        assert get_extension_from_url("https://x.com/a/photo.JPEG?w=100") == ".jpg"
        assert get_extension_from_url("https://x.com/a/photo%20one.png") == ".png"
        assert get_extension_from_url("https://x.com/image.php?id=3") is None
        assert get_extension_from_url("https://x.com/") is None

    @pytest.mark.parametrize(
        ("data", "expected"),
        [(PNG_BYTES, ".png"), (JPEG_BYTES, ".jpg"), (GIF_BYTES, ".gif")],
    )
    def test_detect_by_signature(self, data: bytes, expected: str) -> None:
        assert detect_image_extension(data) == expected

    def test_detect_svg(self) -> None:
        svg = b'<?xml version="1.0"?>\n<svg xmlns="http://www.w3.org/2000/svg"></svg>'
        assert detect_image_extension(svg) == ".svg"

    def test_detect_unknown(self) -> None:
        assert detect_image_extension(b"<html><body>nope</body></html>") is None

    def test_normalize_extension(self) -> None:
        assert normalize_image_extension("JPEG") == ".jpg"
        assert normalize_image_extension(".Png") == ".png"


class TestPaths:
    def test_sanitize_filename(self) -> None:
        assert sanitize_filename('a<b>:c"d|e?f*g#h.png') == "a_b__c_d_e_f_g_h.png"
        assert sanitize_filename("  ..  ") == "image"
        assert sanitize_filename("tab\there.png") == "tabhere.png"

    def test_sanitize_truncates_keeping_extension(self) -> None:
        name = sanitize_filename("x" * 300 + ".png", max_length=50)

        assert len(name) == 50
        assert name.endswith(".png")

    def test_filename_from_url(self) -> None:
        assert filename_from_url("https://x.com/a/my%20photo.png?x=1#frag") == "my photo.png"
        assert filename_from_url("https://x.com/") == ""

    def test_split_name(self) -> None:
        assert split_name("photo.final.png") == ("photo.final", ".png")
        assert split_name("image") == ("image", "")

    def test_vault_parent_and_join(self) -> None:
        assert vault_parent("notes/day.md") == "notes"
        assert vault_parent("day.md") == ""
        assert join_vault_path("", "attachments", "a.png") == "attachments/a.png"
        assert join_vault_path("notes/", "/assets/") == "notes/assets"
        assert join_vault_path("", "") == ""

    @pytest.mark.parametrize(
        ("target", "document", "expected"),
        [
            ("attachments/a.png", "notes/day.md", "../attachments/a.png"),
            ("notes/a.png", "notes/day.md", "a.png"),
            ("attachments/a.png", "day.md", "attachments/a.png"),
            ("notes/assets/a.png", "notes/day.md", "assets/a.png"),
        ],
    )
    def test_relative_link(self, target: str, document: str, expected: str) -> None:
        assert relative_link(target, document) == expected


class TestFormatErrorMessage:
    def test_single_line(self) -> None:
        assert format_error_message("line one\n  line two") == "line one line two"

    def test_truncated(self) -> None:
        msg = format_error_message("x" * 500, max_length=20)
        assert len(msg) == 20
        assert msg.endswith("...")

    def test_exception_without_message(self) -> None:
        assert format_error_message(TimeoutError()) == "TimeoutError"

    def test_paths_sanitized(self) -> None:
        msg = format_error_message(OSError("denied: /home/bob/vault/a.md"))
        assert "bob" not in msg
