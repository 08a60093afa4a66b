"""Exceptions raised by the classification-and-sorting pipeline."""

from pathlib import Path
from typing import Optional, Union


class ImageSortError(Exception):
    """Base class for all ImageSort errors."""


class ConfigError(ImageSortError):
    """Invalid watch target or label table. Fatal at startup."""


class DecodeError(ImageSortError):
    """File is unreadable or not a valid image."""


class OracleError(ImageSortError):
    """Model loading or inference failed."""


class ShapeMismatchError(ImageSortError):
    """Oracle output length disagrees with the label table length."""

    def __init__(self, expected: int, actual: int):
        super().__init__(
            f"Oracle returned {actual} probabilities but the label table has {expected} labels"
        )
        self.expected = expected
        self.actual = actual


class FilesystemError(ImageSortError):
    """Directory creation or move failed.

    ``collision`` is set when the destination file already exists; the source
    file is then left where it was.
    """

    def __init__(
        self,
        message: str,
        path: Optional[Union[str, Path]] = None,
        collision: bool = False
    ):
        super().__init__(message)
        self.path = Path(path) if path is not None else None
        self.collision = collision
