"""Command-line entry point for the workspace tool server."""

import argparse

import uvicorn

from .config import load_config
from .logging_config import setup_bridge_logging, get_logger
from .server import create_app


def main():
    parser = argparse.ArgumentParser(description="Serve project files as MCP tools over HTTP")
    parser.add_argument("--host", default=None, help="Host to bind to (default: from config, 127.0.0.1)")
    parser.add_argument("--port", type=int, default=None, help="Port to bind to (default: from config, 8000)")
    parser.add_argument("--config", default=None, help="Path to config.json")
    parser.add_argument("--root", default=None, help="Project root to expose (default: from config)")
    args = parser.parse_args()

    config = load_config(args.config)
    host = args.host or config.server.host
    port = args.port or config.server.port

    setup_bridge_logging(config.to_dict())
    get_logger("mcp_server").info(f"Starting workspace server on {host}:{port}")

    app = create_app(args.config, args.root, config=config)
    uvicorn.run(
        app,
        host=host,
        port=port,
    )


if __name__ == "__main__":
    main()
