"""Application entrypoint."""

from __future__ import annotations

import uvicorn

from provisioning.api.app import create_app
from provisioning.config import Environment, get_settings
from provisioning.infrastructure.observability.logging import setup_logging


app = create_app()


def main() -> None:
    """Run the API server."""
    settings = get_settings()
    setup_logging(
        settings.observability.log_level,
        json_output=settings.environment != Environment.DEVELOPMENT,
    )

    uvicorn.run(
        "provisioning.main:app",
        host=settings.host,
        port=settings.port,
        workers=settings.workers,
        reload=settings.debug,
        log_level=settings.observability.log_level.lower(),
    )


if __name__ == "__main__":
    main()
