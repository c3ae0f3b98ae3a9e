#!/usr/bin/env python3
"""
SVG Guard MCP Server — Sanitize untrusted SVG markup and files.

Provides tools to sanitize SVG text, sanitize a single SVG file (writing only
on success), audit what sanitization would remove, and inspect the active
allow-lists.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Sequence

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from svgguard.models import SanitizeResult
from svgguard.sanitizer import SVGSanitizer

server = Server("svgguard-mcp-server")

# Maximum SVG size accepted for sanitization (10 MB by default).
MAX_FILE_SIZE = int(os.environ.get("SVG_MAX_FILE_SIZE", 10 * 1024 * 1024))

SVG_EXTENSIONS = ('.svg',)

sanitizer = SVGSanitizer()


# ============================================================================
# SECURITY UTILITIES
# ============================================================================

def _resolve_user_path(path: str, kind: str) -> Path:
    """Resolve a caller-supplied path, refusing null bytes before touching the filesystem."""
    if '\x00' in path:
        raise ValueError(f"Invalid {kind} path: null byte detected")
    return Path(path).resolve()


def _validate_filepath(filepath: str) -> str:
    """Check an SVG to be read: an existing regular .svg file within MAX_FILE_SIZE.

    The size check runs before the file is read, so an oversized upload never
    reaches the sanitizer.

    Raises:
        ValueError: Null byte, not a regular file, not .svg, or too large.
        FileNotFoundError: When the resolved path does not exist.
    """
    resolved = _resolve_user_path(filepath, "file")

    if not resolved.exists():
        raise FileNotFoundError(f"File not found: {filepath}")
    if not resolved.is_file():
        raise ValueError(f"Not a regular file: {filepath}")
    if resolved.suffix.lower() not in SVG_EXTENSIONS:
        raise ValueError(f"Invalid file type '{resolved.suffix}'. Expected an SVG file ({', '.join(SVG_EXTENSIONS)})")

    size = resolved.stat().st_size
    if size > MAX_FILE_SIZE:
        raise ValueError(f"File too large ({size / (1024 * 1024):.1f} MB). Maximum: {MAX_FILE_SIZE / (1024 * 1024):.0f} MB")
    return str(resolved)


def _validate_output_path(output_path: str) -> str:
    """Check where sanitized markup goes: a .svg path in an existing directory, not a directory itself."""
    resolved = _resolve_user_path(output_path, "output")

    if not resolved.parent.is_dir():
        raise ValueError(f"Output directory does not exist: {resolved.parent}")
    if resolved.is_dir():
        raise ValueError(f"Output path is a directory: {output_path}")
    if resolved.suffix.lower() not in SVG_EXTENSIONS:
        raise ValueError(f"Output must be an SVG file, got '{resolved.suffix or output_path}'")
    return str(resolved)


def _validate_svg_text(svg: Any) -> str:
    """Reject non-string and oversized inline markup before sanitizing it."""
    if not isinstance(svg, str):
        raise ValueError("'svg' must be a string")
    if len(svg.encode('utf-8')) > MAX_FILE_SIZE:
        raise ValueError(f"SVG too large. Maximum: {MAX_FILE_SIZE / (1024 * 1024):.0f} MB")
    return svg


# ============================================================================
# UTILITIES
# ============================================================================

def generate_output_path(input_path: str, suffix: str = "_sanitized") -> str:
    """Generate output path from input path."""
    p = Path(input_path)
    return str(p.parent / f"{p.stem}{suffix}{p.suffix}")


def format_report(result: SanitizeResult) -> str:
    """Render a sanitize result as a markdown report."""
    if not result.ok:
        return f"# SVG Audit\n\n**Rejected:** {result.failure.description}"

    lines = ["# SVG Audit", "", f"**Result:** {result.summary()}"]
    if result.output == '':
        lines.append("**Note:** the root element is not allowed; nothing would remain")

    if result.removed_elements:
        lines += ["", "## Removed elements", ""]
        counts: dict[str, int] = {}
        for tag in result.removed_elements:
            counts[tag] = counts.get(tag, 0) + 1
        lines += [f"- `<{tag}>` × {n}" for tag, n in sorted(counts.items())]

    if result.removed_attributes:
        lines += ["", "## Removed attributes", ""]
        lines += [f"- `{attr}` on `<{tag}>`" for tag, attr in result.removed_attributes]

    if not result.changed:
        lines += ["", "Nothing to remove. The SVG is already clean."]
    return "\n".join(lines)


def _failure_text(result: SanitizeResult) -> str:
    return f"Sanitization failed ({result.failure.value}): {result.failure.description}"


def _emptied_text(result: SanitizeResult) -> str:
    root = result.removed_elements[-1] if result.removed_elements else "svg"
    return f"Sanitized to nothing: the root element `<{root}>` is not allowed"


# ============================================================================
# MCP TOOLS
# ============================================================================

@server.list_tools()
async def list_tools() -> list[Tool]:
    return [
        Tool(
            name="sanitize_svg",
            description="Sanitize SVG markup: strip scripts, remote references, entities and non-allowed elements/attributes",
            inputSchema={
                "type": "object",
                "properties": {"svg": {"type": "string", "description": "SVG markup to sanitize"}},
                "required": ["svg"]
            }
        ),
        Tool(
            name="sanitize_svg_file",
            description="Sanitize an SVG file. Writes only when sanitization succeeds",
            inputSchema={
                "type": "object",
                "properties": {
                    "filepath": {"type": "string", "description": "Path to the .svg file"},
                    "output_path": {"type": "string", "description": "Where to write (default: <name>_sanitized.svg)"},
                    "in_place": {"type": "boolean", "default": False, "description": "Overwrite the input file"}
                },
                "required": ["filepath"]
            }
        ),
        Tool(
            name="audit_svg",
            description="Report what sanitization would remove from SVG markup or an SVG file, without writing anything",
            inputSchema={
                "type": "object",
                "properties": {
                    "svg": {"type": "string", "description": "SVG markup"},
                    "filepath": {"type": "string", "description": "Path to an .svg file (used when svg is omitted)"}
                }
            }
        ),
        Tool(
            name="list_allowlists",
            description="List the element and attribute allow-lists the sanitizer enforces",
            inputSchema={"type": "object", "properties": {}}
        ),
    ]


async def handle_sanitize_svg(arguments: dict) -> Sequence[TextContent]:
    svg = _validate_svg_text(arguments.get("svg"))
    result = sanitizer.sanitize_with_report(svg)
    if not result.ok:
        return [TextContent(type="text", text=_failure_text(result))]
    if result.output == '':
        return [TextContent(type="text", text=_emptied_text(result))]
    return [TextContent(type="text", text=result.output)]


async def handle_sanitize_svg_file(arguments: dict) -> Sequence[TextContent]:
    filepath = _validate_filepath(arguments["filepath"])
    if arguments.get("in_place"):
        output_path = filepath
    else:
        output_path = _validate_output_path(
            arguments.get("output_path") or generate_output_path(filepath)
        )

    content = Path(filepath).read_bytes()
    result = sanitizer.sanitize_with_report(content)
    if not result.ok:
        return [TextContent(type="text", text=f"{_failure_text(result)}\n\nNothing written for: {filepath}")]

    if result.output == '':
        return [TextContent(type="text", text=f"{_emptied_text(result)}\n\nNothing written for: {filepath}")]

    Path(output_path).write_text(result.output, encoding='utf-8')
    return [TextContent(type="text", text=f"{result.summary()}\n\nSaved to: {output_path}")]


async def handle_audit_svg(arguments: dict) -> Sequence[TextContent]:
    if arguments.get("svg") is not None:
        content = _validate_svg_text(arguments["svg"])
    elif arguments.get("filepath"):
        content = Path(_validate_filepath(arguments["filepath"])).read_bytes()
    else:
        raise ValueError("Provide either 'svg' or 'filepath'")
    result = sanitizer.sanitize_with_report(content)
    return [TextContent(type="text", text=format_report(result))]


async def handle_list_allowlists(arguments: dict) -> Sequence[TextContent]:
    lists = sanitizer.allow_lists
    elements = ", ".join(sorted(lists.elements))
    attributes = ", ".join(sorted(lists.attributes))
    text = f"""# Allow-lists

## Elements ({len(lists.elements)})

{elements}

## Attributes ({len(lists.attributes)})

{attributes}

Attributes starting with `aria-` or `data-` are always allowed."""
    return [TextContent(type="text", text=text)]


TOOL_HANDLERS = {
    "sanitize_svg": handle_sanitize_svg,
    "sanitize_svg_file": handle_sanitize_svg_file,
    "audit_svg": handle_audit_svg,
    "list_allowlists": handle_list_allowlists,
}


@server.call_tool()
async def call_tool(name: str, arguments: dict[str, Any]) -> Sequence[TextContent]:
    handler = TOOL_HANDLERS.get(name)
    if not handler:
        return [TextContent(type="text", text=f"Unknown tool: {name}")]
    try:
        return await handler(arguments)
    except FileNotFoundError as e:
        return [TextContent(type="text", text=f"File not found: {e}")]
    except ValueError as e:
        return [TextContent(type="text", text=f"Validation error: {e}")]
    except Exception as e:
        return [TextContent(type="text", text=f"Error: {type(e).__name__}")]


# ============================================================================
# MAIN
# ============================================================================

async def main():
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


def main_sync():
    """Synchronous entry point for use as a console script."""
    import asyncio
    asyncio.run(main())


if __name__ == "__main__":
    main_sync()
