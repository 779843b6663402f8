"""Main application entry point."""

import argparse
import logging

import uvicorn
from dotenv import load_dotenv

from src.services.logging import setup_server_logging

# Load environment variables before settings are read
load_dotenv()

logger = logging.getLogger(__name__)


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Tenant billing API")
    parser.add_argument("--host", default="0.0.0.0", help="Host to bind to")
    parser.add_argument("--port", type=int, default=8000, help="Port to bind to")
    args = parser.parse_args()

    from src.api.app import create_app
    from src.services.config import get_settings

    settings = get_settings()
    setup_server_logging(settings.log_file, settings.log_level)

    app = create_app(settings)
    logger.info(f"Starting Uvicorn server on {args.host}:{args.port}...")
    uvicorn.run(
        app,
        host=args.host,
        port=args.port,
        log_config=None,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
