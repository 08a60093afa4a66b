"""Move accepted images into label-named subfolders."""

import errno
import os
from pathlib import Path
from typing import Union

from .errors import FilesystemError
from .utils import safe_create_dir

# os.link failures that mean "no hard links here", not "move failed"
_NO_HARDLINK = {errno.EPERM, errno.EACCES, errno.ENOTSUP, errno.EOPNOTSUPP, errno.EXDEV, errno.EMLINK}


def destination_for(file_path: Union[str, Path], label: str) -> Path:
    """Return ``<dir of file_path>/<label>/<basename of file_path>``."""
    source = Path(file_path)
    return source.parent / label / source.name


def place(file_path: Union[str, Path], label: str) -> Path:
    """
    Move a file into the ``label`` subfolder next to it.

    The label folder is created if needed; an existing folder is reused. The
    move never overwrites: if the destination exists the source stays put.

    Args:
        file_path: File to move
        label: Winning label, used verbatim as the folder name

    Returns:
        Path of the moved file

    Raises:
        FilesystemError: ``collision=True`` if the destination exists,
            ``collision=False`` for any other failure
    """
    source = Path(file_path)
    _check_label(label)
    destination = destination_for(source, label)

    try:
        safe_create_dir(destination.parent)
    except OSError as e:
        raise FilesystemError(
            f"Could not create directory {destination.parent}: {e}", path=destination.parent
        ) from e

    try:
        _move_no_clobber(source, destination)
    except FileExistsError as e:
        raise FilesystemError(
            f"Destination {destination} already exists; leaving {source} in place",
            path=destination,
            collision=True
        ) from e
    except OSError as e:
        raise FilesystemError(f"Could not move {source} to {destination}: {e}", path=source) from e

    return destination


def _check_label(label: str) -> None:
    separators = [sep for sep in (os.sep, os.altsep) if sep]
    if not label or label in (".", "..") or any(sep in label for sep in separators):
        raise FilesystemError(f"Label {label!r} cannot be used as a folder name")


def _move_no_clobber(source: Path, destination: Path) -> None:
    # link() fails atomically with EEXIST, so a concurrent writer cannot be clobbered
    try:
        os.link(source, destination)
    except FileExistsError:
        raise
    except OSError as e:
        if e.errno not in _NO_HARDLINK:
            raise
        if destination.exists():
            raise FileExistsError(errno.EEXIST, os.strerror(errno.EEXIST), str(destination)) from e
        os.rename(source, destination)
        return

    try:
        os.unlink(source)
    except OSError:
        destination.unlink()
        raise
