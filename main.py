"""Main entry point for Xiangqi AI server."""

import argparse
import logging
import os

import uvicorn

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Xiangqi AI Server")
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        default=None,
        help="Path to a TOML config file (default: xiangqi.toml)",
    )
    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Host to bind to (default: from config, 0.0.0.0)",
    )
    parser.add_argument(
        "--port",
        "-p",
        type=int,
        default=None,
        help="Port to bind to (default: from config, 8000)",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development",
    )

    args = parser.parse_args()

    # Set config path as environment variable so the app module picks it up
    if args.config:
        os.environ["XIANGQI_CONFIG_TOML"] = args.config

    from xiangqi.config import load_config

    config = load_config()
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    uvicorn.run(
        "api:app",
        host=args.host or config.server.host,
        port=args.port or config.server.port,
        reload=args.reload,
    )
