"""Server entry point for the pass server API."""

import uvicorn

from passserver.config import get_config


def main():
    """Run the FastAPI server."""
    config = get_config()
    uvicorn.run(
        "passserver.api:app",
        host=config.host,
        port=config.port,
        reload=config.is_development,
        log_level="info",
    )


if __name__ == "__main__":
    main()
