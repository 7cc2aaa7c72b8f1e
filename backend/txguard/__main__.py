"""
Module entry point for running the application.
"""
import uvicorn

from .core.settings import settings


def main() -> None:
    uvicorn.run(
        "txguard.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_level=settings.log_level.lower()
    )


if __name__ == "__main__":
    main()
