"""Serve the RIPAUDIT API: ``python -m ripaudit``."""

import uvicorn

from ripaudit.config import settings


def main() -> None:
    uvicorn.run(
        "ripaudit.api.server:app",
        host=settings.host,
        port=settings.port,
        reload=settings.env == "development",
        log_level="info",
    )


if __name__ == "__main__":
    main()
