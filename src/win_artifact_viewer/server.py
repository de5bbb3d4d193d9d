"""Windows Artifact Viewer MCP Server.

Exposes the USN journal and event log renderers as tools so a client can
request the same plain, CSV or mactime output the command-line tools print.
"""

import asyncio
import io
import json
import logging
from typing import Any, Dict, List

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from .config import DEFAULT_TIMEZONE, get_config
from .errors import InvalidArgument
from .parsers import EventLog, UsnJournal
from .rendering import (
    DateRangeFilter,
    DisplayConfig,
    EventLogLayout,
    FilenamePolicy,
    RenderMode,
    SessionDriver,
    UsnLayout,
)
from .utils.timestamps import TimeZoneConfig

_LOG = logging.getLogger(__name__)

# Initialize MCP server
server = Server("win-artifact-viewer")


def json_response(data: Any) -> list[TextContent]:
    """Format response as JSON text content."""
    return [TextContent(type="text", text=json.dumps(data, indent=2, default=str, ensure_ascii=False))]


# Properties shared by both render tools
_RENDER_PROPERTIES = {
    "paths": {
        "type": "array",
        "items": {"type": "string"},
        "description": "Artifact files to render, processed in the given order",
    },
    "mode": {
        "type": "string",
        "enum": [mode.value for mode in RenderMode],
        "default": "plain",
        "description": "Output format",
    },
    "timezone": {
        "type": "string",
        "description": "POSIX TZ string or zone name used for dates (default GMT)",
    },
    "start_date": {
        "type": "string",
        "description": "mm/dd/yyyy - only records on or after this date",
    },
    "end_date": {
        "type": "string",
        "description": "mm/dd/yyyy - only records on or before this date",
    },
    "with_filename": {
        "type": "boolean",
        "default": False,
        "description": "Always prefix records with their source file",
    },
    "no_filename": {
        "type": "boolean",
        "default": False,
        "description": "Never prefix records with their source file",
    },
}


# =============================================================================
# Tool Definitions
# =============================================================================

@server.list_tools()
async def list_tools() -> list[Tool]:
    """List all available rendering tools."""
    return [
        Tool(
            name="win_usn_journal_render",
            description="Render NTFS USN change journal ($UsnJrnl:$J) records as plain text, "
                        "CSV or SleuthKit mactime body lines.",
            inputSchema={
                "type": "object",
                "properties": dict(_RENDER_PROPERTIES),
                "required": ["paths"],
            },
        ),
        Tool(
            name="win_event_log_render",
            description="Render legacy Windows event log (.evt) records as plain text, "
                        "CSV or SleuthKit mactime body lines.",
            inputSchema={
                "type": "object",
                "properties": {
                    **_RENDER_PROPERTIES,
                    "show_strings": {
                        "type": "boolean",
                        "default": True,
                        "description": "Include embedded strings and binary data",
                    },
                },
                "required": ["paths"],
            },
        ),
        Tool(
            name="win_viewer_config",
            description="Show the viewer's environment-driven configuration.",
            inputSchema={"type": "object", "properties": {}},
        ),
    ]


def build_config(arguments: Dict[str, Any], show_strings: bool = True) -> DisplayConfig:
    """Build a display configuration from tool arguments.

    Raises:
        InvalidArgument: on a malformed date, mode or timezone
    """
    mode_name = arguments.get("mode", RenderMode.PLAIN.value)
    try:
        mode = RenderMode(mode_name)
    except ValueError as e:
        raise InvalidArgument(f"Unknown mode: {mode_name!r}") from e

    return DisplayConfig(
        mode=mode,
        filename_policy=FilenamePolicy.from_flags(
            with_filename=arguments.get("with_filename", False),
            no_filename=arguments.get("no_filename", False),
        ),
        date_range=DateRangeFilter(start=arguments.get("start_date"), end=arguments.get("end_date")),
        show_strings=show_strings,
        timezone=TimeZoneConfig.from_string(arguments.get("timezone") or DEFAULT_TIMEZONE),
    )


def render_paths(
    config: DisplayConfig,
    paths: List[str],
    source,
    layout,
) -> Dict[str, Any]:
    """Run a session into a buffer and return its text and tally."""
    if not paths:
        raise InvalidArgument("You must specify at least one file")

    buffer = io.StringIO()
    count = SessionDriver(config, source, layout, out=buffer).run(paths)
    return {"output": buffer.getvalue(), "record_count": count}


# =============================================================================
# Tool Handlers
# =============================================================================

@server.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent]:
    """Handle tool calls."""
    try:
        if name == "win_usn_journal_render":
            config = build_config(arguments)
            result = render_paths(config, arguments.get("paths", []), UsnJournal, UsnLayout())
            return json_response(result)

        elif name == "win_event_log_render":
            config = build_config(arguments, show_strings=arguments.get("show_strings", True))
            result = render_paths(config, arguments.get("paths", []), EventLog, EventLogLayout())
            return json_response(result)

        elif name == "win_viewer_config":
            return json_response(get_config())

        else:
            return json_response({"error": f"Unknown tool: {name}"})

    except InvalidArgument as e:
        return json_response({"error": str(e), "type": type(e).__name__})
    except Exception as e:
        _LOG.exception("Tool %s failed", name)
        return json_response({"error": str(e), "type": type(e).__name__})


# =============================================================================
# Main Entry Point
# =============================================================================

async def run():
    """Run the MCP server."""
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


def main():
    """Main entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
