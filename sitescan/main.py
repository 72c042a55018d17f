"""Application entry point for the site document OCR API server."""

import uvicorn

from sitescan.api.app import create_app
from sitescan.utils.config import load_config
from sitescan.utils.logger import setup_logging


def main() -> None:
    """Start the FastAPI application server."""
    config = load_config()
    setup_logging(config.log_level)
    uvicorn.run(create_app(config), host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
