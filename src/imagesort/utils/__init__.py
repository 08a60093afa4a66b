"""Utility functions."""

from .io import (
    setup_logger,
    safe_create_dir,
    save_json,
    load_json,
)

__all__ = [
    "setup_logger",
    "safe_create_dir",
    "save_json",
    "load_json",
]
