"""Arborist - drag-and-drop reordering for stored trees.

Nodes are kept as an adjacency list with a dense per-parent order; the web
view lets users reparent and reorder them by dragging.
"""

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

__version__ = "0.1.0"


def _setup_logging(log_dir: Path = Path("logs")) -> None:
    """Configure logging to both console and rotating file."""
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / f"arborist.{os.getpid()}.log"

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # File handler - detailed logging with rotation (10MB, keep 5 backups)
    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    file_formatter = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    file_handler.setFormatter(file_formatter)

    # Console handler - less verbose
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))

    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    logging.info("Logging configured. Log file: %s", log_file.absolute())


def main() -> None:
    """Entry point for the Arborist application."""
    from nicegui import app, ui

    from arborist.config import get_settings

    settings = get_settings()
    _setup_logging(settings.app.log_dir)

    _static_dir = Path(__file__).parent / "static"
    app.add_static_files("/static", str(_static_dir))

    import arborist.pages  # noqa: F401 - registers routes

    if settings.database.url:
        from arborist.db import close_db, get_engine, init_db, verify_schema
        from arborist.db.bootstrap import run_alembic_upgrade

        run_alembic_upgrade()  # idempotent, creates the database if needed

        @app.on_startup
        async def startup() -> None:
            await init_db()
            await verify_schema(get_engine())
            print("Database connected")

        @app.on_shutdown
        async def shutdown() -> None:
            await close_db()
    else:
        print("DATABASE__URL not set, serving the in-memory demo tree")

    port = settings.app.port
    storage_secret = settings.app.storage_secret.get_secret_value()

    print(f"Arborist v{__version__}")
    print(f"Starting application on http://0.0.0.0:{port}")

    ui.run(
        host="0.0.0.0",  # nosec B104
        port=port,
        title=settings.app.title,
        reload=settings.dev.reload,
        storage_secret=storage_secret,
    )


if __name__ in {"__main__", "__mp_main__"}:
    main()
