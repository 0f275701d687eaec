#!/usr/bin/env python3
"""
HTTP transport entrypoint for the Brewing Water MCP Server.

Imports the FastMCP instance from server.py and runs it over the
streamable-http transport.

Environment:
    BREWING_WATER_HOST: Bind address (default 0.0.0.0)
    BREWING_WATER_PORT: Port (default 8000)
"""

import logging
import os
import sys

# Add the current directory to the Python path
sys.path.insert(0, os.path.dirname(__file__))

from server import mcp

logger = logging.getLogger("brewing-water-mcp")

HOST = os.environ.get("BREWING_WATER_HOST", "0.0.0.0")
PORT = int(os.environ.get("BREWING_WATER_PORT", "8000"))


if __name__ == "__main__":
    logger.info(f"Starting Brewing Water MCP server with HTTP transport on {HOST}:{PORT}...")
    mcp.settings.host = HOST
    mcp.settings.port = PORT
    mcp.run(transport="streamable-http")
