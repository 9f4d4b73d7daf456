"""Logging configuration for trix."""

import logging
from pathlib import Path

DEFAULT_LOG_FILE = Path.home() / ".trix" / "log" / "trix.log"


def setup_logging(log_file: str = "", level: int = logging.INFO, stderr: bool = False) -> None:
    """Log to a file, and to stderr only when asked (keeps the REPL clean)."""

    log_path = Path(log_file) if log_file else DEFAULT_LOG_FILE
    log_path.parent.mkdir(parents=True, exist_ok=True)

    handlers: list[logging.Handler] = [
        logging.FileHandler(log_path, mode="a", encoding="utf-8"),
    ]
    if stderr:
        handlers.append(logging.StreamHandler())

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=handlers,
        force=True,
    )

    # Suppress noisy third-party logs
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("markdown_it").setLevel(logging.WARNING)

    logging.getLogger("trix").setLevel(level)
    logging.info(f"trix logging started. Writing to {log_path.absolute()}")
