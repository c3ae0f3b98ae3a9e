"""Tests for server.py — tool handlers, path validation, and dispatch logic."""

from pathlib import Path

import pytest

import server
from server import (
    TOOL_HANDLERS,
    _validate_filepath,
    _validate_output_path,
    call_tool,
    format_report,
    generate_output_path,
    handle_audit_svg,
    handle_list_allowlists,
    handle_sanitize_svg,
    handle_sanitize_svg_file,
    list_tools,
)
from svgguard.models import FailureReason, SanitizeResult
from svgguard.sanitizer import SVGSanitizer

HOSTILE = '<svg onload="alert(1)"><script>alert(1)</script><rect width="1" onclick="x()"/></svg>'
CLEAN = '<svg><rect width="1"></rect></svg>'


@pytest.fixture
def svg_file(tmp_path):
    p = tmp_path / "icon.svg"
    p.write_text(HOSTILE)
    return p


# ============================================================
# Utility Functions
# ============================================================


class TestGenerateOutputPath:
    def test_default_suffix(self):
        assert generate_output_path("/path/to/icon.svg") == "/path/to/icon_sanitized.svg"

    def test_custom_suffix(self):
        assert generate_output_path("/path/to/logo.svg", "_clean") == "/path/to/logo_clean.svg"


class TestFormatReport:
    def test_failure(self):
        report = format_report(SanitizeResult(failure=FailureReason.MISSING_BOUNDARY))
        assert "Rejected" in report
        assert "no <svg>" in report

    def test_removals_listed(self):
        result = SanitizeResult(
            output='<svg></svg>',
            removed_elements=['script', 'script', 'iframe'],
            removed_attributes=[('rect', 'onclick')],
        )
        report = format_report(result)
        assert "`<script>` × 2" in report
        assert "`<iframe>` × 1" in report
        assert "`onclick` on `<rect>`" in report

    def test_clean(self):
        report = format_report(SanitizeResult(output=CLEAN))
        assert "already clean" in report


# ============================================================
# Path validation
# ============================================================


class TestFilePathValidation:

    def test_null_byte_rejected(self, tmp_path):
        with pytest.raises(ValueError, match="null byte"):
            _validate_filepath(str(tmp_path / "a\x00.svg"))

    def test_nonexistent_file_raises_fnf(self):
        with pytest.raises(FileNotFoundError):
            _validate_filepath("/nonexistent/path/icon.svg")

    def test_wrong_extension_rejected(self, tmp_path):
        p = tmp_path / "icon.png"
        p.write_bytes(b"\x89PNG")
        with pytest.raises(ValueError, match="Invalid file type"):
            _validate_filepath(str(p))

    def test_directory_rejected_as_file(self, tmp_path):
        with pytest.raises(ValueError, match="Not a regular file"):
            _validate_filepath(str(tmp_path))

    def test_oversized_file_rejected(self, tmp_path, monkeypatch):
        monkeypatch.setattr(server, "MAX_FILE_SIZE", 10)
        p = tmp_path / "big.svg"
        p.write_text(HOSTILE)
        with pytest.raises(ValueError, match="File too large"):
            _validate_filepath(str(p))

    def test_valid_file_accepted(self, svg_file):
        assert _validate_filepath(str(svg_file)) == str(svg_file.resolve())

    def test_uppercase_extension_accepted(self, tmp_path):
        p = tmp_path / "ICON.SVG"
        p.write_text(CLEAN)
        assert _validate_filepath(str(p)) == str(p.resolve())


class TestOutputPathValidation:

    def test_null_byte_rejected(self):
        with pytest.raises(ValueError, match="null byte"):
            _validate_output_path("/tmp/out\x00.svg")

    def test_missing_parent_dir_rejected(self):
        with pytest.raises(ValueError, match="does not exist"):
            _validate_output_path("/nonexistent/dir/out.svg")

    def test_valid_output_accepted(self, tmp_path):
        out = tmp_path / "out.svg"
        assert _validate_output_path(str(out)) == str(out.resolve())

    def test_non_svg_output_rejected(self, tmp_path):
        with pytest.raises(ValueError, match="Output must be an SVG file"):
            _validate_output_path(str(tmp_path / "out.html"))

    def test_directory_output_rejected(self, tmp_path):
        target = tmp_path / "sub.svg"
        target.mkdir()
        with pytest.raises(ValueError, match="is a directory"):
            _validate_output_path(str(target))


# ============================================================
# Tool handlers
# ============================================================


class TestSanitizeSvgTool:

    async def test_returns_sanitized_markup(self):
        result = await handle_sanitize_svg({"svg": HOSTILE})
        assert result[0].text == CLEAN

    async def test_reports_failure(self):
        result = await handle_sanitize_svg({"svg": "<svg><rect/>"})
        assert "Sanitization failed (missing_boundary)" in result[0].text

    async def test_rejected_root_reported_as_emptied(self, monkeypatch):
        monkeypatch.setattr(server, "sanitizer", SVGSanitizer(element_filter=lambda tags: [t for t in tags if t != 'svg']))
        result = await handle_sanitize_svg({"svg": CLEAN})
        assert result[0].text == "Sanitized to nothing: the root element `<svg>` is not allowed"

    async def test_rejects_non_string(self):
        with pytest.raises(ValueError, match="must be a string"):
            await handle_sanitize_svg({"svg": 12})

    async def test_rejects_oversized_markup(self, monkeypatch):
        monkeypatch.setattr(server, "MAX_FILE_SIZE", 10)
        with pytest.raises(ValueError, match="SVG too large"):
            await handle_sanitize_svg({"svg": HOSTILE})


class TestSanitizeSvgFileTool:

    async def test_writes_sibling_by_default(self, svg_file):
        result = await handle_sanitize_svg_file({"filepath": str(svg_file)})
        out = svg_file.parent / "icon_sanitized.svg"
        assert out.read_text() == CLEAN
        assert svg_file.read_text() == HOSTILE
        assert "Saved to:" in result[0].text

    async def test_explicit_output_path(self, svg_file, tmp_path):
        out = tmp_path / "clean.svg"
        await handle_sanitize_svg_file({"filepath": str(svg_file), "output_path": str(out)})
        assert out.read_text() == CLEAN

    async def test_in_place_overwrites(self, svg_file):
        await handle_sanitize_svg_file({"filepath": str(svg_file), "in_place": True})
        assert svg_file.read_text() == CLEAN

    async def test_rejected_root_writes_nothing(self, svg_file, monkeypatch):
        monkeypatch.setattr(server, "sanitizer", SVGSanitizer(element_filter=lambda tags: [t for t in tags if t != 'svg']))
        result = await handle_sanitize_svg_file({"filepath": str(svg_file), "in_place": True})
        assert result[0].text.startswith("Sanitized to nothing")
        assert "Nothing written" in result[0].text
        assert svg_file.read_text() == HOSTILE

    async def test_non_svg_output_path_rejected(self, svg_file, tmp_path):
        with pytest.raises(ValueError, match="Output must be an SVG file"):
            await handle_sanitize_svg_file({"filepath": str(svg_file), "output_path": str(tmp_path / "x.txt")})

    async def test_failure_writes_nothing(self, tmp_path):
        p = tmp_path / "broken.svg"
        p.write_text("<svg><g></svg>")
        result = await handle_sanitize_svg_file({"filepath": str(p), "in_place": True})
        assert "Nothing written" in result[0].text
        assert p.read_text() == "<svg><g></svg>"
        assert not (tmp_path / "broken_sanitized.svg").exists()


class TestAuditSvgTool:

    async def test_audit_markup(self):
        result = await handle_audit_svg({"svg": HOSTILE})
        text = result[0].text
        assert "`<script>` × 1" in text
        assert "`onload` on `<svg>`" in text
        assert "`onclick` on `<rect>`" in text

    async def test_audit_file_does_not_write(self, svg_file):
        await handle_audit_svg({"filepath": str(svg_file)})
        assert svg_file.read_text() == HOSTILE
        assert list(svg_file.parent.iterdir()) == [svg_file]

    async def test_requires_input(self):
        with pytest.raises(ValueError, match="Provide either"):
            await handle_audit_svg({})


class TestListAllowlistsTool:

    async def test_lists_both(self):
        result = await handle_list_allowlists({})
        text = result[0].text
        assert "## Elements (32)" in text
        assert "## Attributes (87)" in text
        assert "foreignobject" in text


# ============================================================
# Dispatch
# ============================================================


class TestDispatch:

    def test_every_tool_has_handler(self):
        assert set(TOOL_HANDLERS) == {"sanitize_svg", "sanitize_svg_file", "audit_svg", "list_allowlists"}

    async def test_list_tools_matches_handlers(self):
        tools = await list_tools()
        assert {tool.name for tool in tools} == set(TOOL_HANDLERS)

    async def test_unknown_tool(self):
        result = await call_tool("nope", {})
        assert result[0].text == "Unknown tool: nope"

    async def test_validation_error_reported(self):
        result = await call_tool("audit_svg", {})
        assert result[0].text.startswith("Validation error:")

    async def test_missing_file_reported(self):
        result = await call_tool("sanitize_svg_file", {"filepath": "/nonexistent/x.svg"})
        assert result[0].text.startswith("File not found:")

    async def test_dispatches_to_handler(self):
        result = await call_tool("sanitize_svg", {"svg": "<svg><script/></svg>"})
        assert result[0].text == "<svg></svg>"
