"""FastMCP server for CDSS.

MCP (Model Context Protocol) server exposing CQL rule execution over FHIR
data as tools.

Usage:
    # HTTP transport
    python -m cdss.fastmcp.server

    # stdio transport for MCP Inspector
    python -m cdss.fastmcp.server --stdio

Environment Variables:
    CDSS_ENGINE_FACTORY: module:attribute of the CQL engine factory (required)
    CDSS_CODE_SERVICE_FACTORY: module:attribute of the terminology service factory
    CDSS_PATIENT_BY_ID_URL, CDSS_RULE_BY_ID_URL, ...: endpoint templates
"""
from __future__ import annotations

import argparse
import logging
import os
from datetime import datetime, timezone
from pathlib import Path

from dotenv import load_dotenv

from .app import get_service, mcp


def main() -> None:
    """Run the CDSS MCP Server."""
    parser = argparse.ArgumentParser(
        description="CDSS MCP Server - CQL decision support over FHIR",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python -m cdss.fastmcp.server
    python -m cdss.fastmcp.server --port 8010

    # stdio transport for MCP Inspector
    npx @modelcontextprotocol/inspector python -m cdss.fastmcp.server --stdio
        """
    )
    parser.add_argument(
        "--stdio",
        action="store_true",
        help="Use stdio transport (for MCP Inspector)"
    )
    parser.add_argument(
        "--host",
        default=os.environ.get("CDSS_HOST", "0.0.0.0"),
        help="Host to bind to (default: 0.0.0.0)"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.environ.get("CDSS_PORT", "8002")),
        help="Port to listen on (default: 8002)"
    )
    parser.add_argument(
        "--env-file",
        default=str(Path.cwd() / ".env"),
        help="Environment file to load before reading CDSS_* settings"
    )
    args = parser.parse_args()

    load_dotenv(args.env_file)
    logging.basicConfig(level=os.environ.get("CDSS_LOG_LEVEL", "INFO").upper())

    # Import tools so they register via decorators
    from . import tools  # noqa: F401

    service = get_service()

    if args.stdio:
        mcp.run(transport="stdio")
        return

    from starlette.responses import JSONResponse

    async def health_check(request):
        """Health check endpoint for monitoring."""
        return JSONResponse({
            "status": "healthy",
            "system_name": service.config.system_name,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })

    async def root(request):
        """Root endpoint with basic info."""
        return JSONResponse({
            "name": "CDSS MCP Server",
            "description": "CQL decision support over FHIR",
            "endpoints": service.config.describe(),
            "health": "/health",
            "mcp_endpoint": "/mcp"
        })

    mcp.custom_route("/health", methods=["GET"])(health_check)
    mcp.custom_route("/", methods=["GET"])(root)

    print("=" * 60)
    print("CDSS MCP Server")
    print("=" * 60)
    print(f"Transport: http")
    print(f"Listening on: http://{args.host}:{args.port}")
    print(f"Health check: http://{args.host}:{args.port}/health")
    print("Use --stdio flag for MCP Inspector")
    print("=" * 60)
    mcp.run(transport="http", host=args.host, port=args.port)


if __name__ == "__main__":
    main()
