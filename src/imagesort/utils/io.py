"""I/O utilities for file operations and logging."""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Union

from rich.console import Console
from rich.logging import RichHandler


def setup_logger(name: str = "imagesort", level: int = logging.INFO) -> logging.Logger:
    """Setup logger with rich formatting."""
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Remove existing handlers
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    # Log to stderr so stdout stays clean for --json output
    console = Console(stderr=True)
    handler = RichHandler(console=console, rich_tracebacks=True)
    formatter = logging.Formatter(
        fmt="%(message)s",
        datefmt="[%X]"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    return logger


def safe_create_dir(path: Union[str, Path]) -> Path:
    """Safely create directory if it doesn't exist."""
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def save_json(data: Dict[str, Any], path: Union[str, Path]) -> None:
    """Save data to JSON file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2, ensure_ascii=False)


def load_json(path: Union[str, Path]) -> Any:
    """Load data from JSON file."""
    path = Path(path)

    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)
