"""File primitives used to write configuration into PGDATA."""

import os
import tempfile
from pathlib import Path
from typing import Union

PathLike = Union[str, Path]

FILE_MODE = 0o600


def ensure_directory_exists(path: PathLike) -> Path:
    """Create the directory (and parents) if missing, return it as a Path."""
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def write_string_to_file(path: PathLike, content: str) -> bool:
    """
    Atomically replace the file content.

    The new content goes to a temporary file in the same directory which is
    then renamed over the target, so readers never see a half-written file.

    Returns True when the content changed.
    """
    path = Path(path)
    if path.exists() and path.read_text() == content:
        return False

    fd, temp_name = tempfile.mkstemp(dir=str(path.parent), prefix=f'.{path.name}.')
    try:
        with os.fdopen(fd, 'w') as temp_file:
            temp_file.write(content)
            temp_file.flush()
            os.fsync(temp_file.fileno())
        os.chmod(temp_name, FILE_MODE)
        os.replace(temp_name, path)
    except BaseException:
        if os.path.exists(temp_name):
            os.unlink(temp_name)
        raise
    return True


def append_string_to_file(path: PathLike, content: str) -> None:
    """Append content to the file, creating it with mode 0600 if needed."""
    fd = os.open(str(path), os.O_WRONLY | os.O_APPEND | os.O_CREAT, FILE_MODE)
    with os.fdopen(fd, 'a') as target:
        target.write(content)


def truncate_file(path: PathLike) -> None:
    """Leave an empty file at path, creating it if needed."""
    fd = os.open(str(path), os.O_WRONLY | os.O_TRUNC | os.O_CREAT, FILE_MODE)
    os.close(fd)


def read_file(path: PathLike) -> str:
    with open(path, 'r') as f:
        return f.read()
