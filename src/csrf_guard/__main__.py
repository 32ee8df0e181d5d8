#!/usr/bin/env python3
"""
Main entry point for running the CSRF token authority.
"""

import argparse
import logging
import os
import sys


def main():
    """Run the CSRF token authority as a standalone HTTP service."""
    parser = argparse.ArgumentParser(description="Run the csrf-guard token authority")
    parser.add_argument("--host", help="Host to bind to")
    parser.add_argument("--port", type=int, help="Port to listen on")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    log_level = logging.DEBUG if args.debug else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    logger = logging.getLogger("csrf_guard")

    host = args.host or os.environ.get("HOST", "127.0.0.1")
    port = args.port or int(os.environ.get("PORT", "9000"))

    # Import after logging is configured so store selection is logged
    import uvicorn
    from csrf_guard import create_app

    app = create_app()
    logger.info("Starting csrf-guard on %s:%s", host, port)
    try:
        uvicorn.run(app, host=host, port=port, log_level="debug" if args.debug else "info")
        logger.info("Server stopped")
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except Exception as e:
        logger.error("Error running server: %s", e)
        sys.exit(1)


if __name__ == "__main__":
    main()
