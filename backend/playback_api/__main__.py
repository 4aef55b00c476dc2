"""CLI entry point for launching the playback API with Uvicorn."""
import uvicorn

from .app import create_app
from .log_config import configure_logging
from .settings import PlaybackSettings


def main() -> None:
    """Start a development server for the playback API."""
    settings = PlaybackSettings()
    configure_logging(settings.log_level)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
