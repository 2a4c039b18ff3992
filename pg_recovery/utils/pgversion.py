"""Detect the PostgreSQL major version of a data directory."""

from pathlib import Path

from pg_recovery.utils.errors import ConfigurationError

PG_VERSION_FILE = 'PG_VERSION'


def get_major_version(pgdata) -> int:
    """
    Read PG_VERSION from the data directory and return the major version.

    Releases before 10 use a two-part major ("9.6"); only the first part is
    returned since it is enough to pick the recovery configuration scheme.
    """
    version_file = Path(pgdata) / PG_VERSION_FILE
    try:
        content = version_file.read_text().strip()
    except OSError as e:
        raise ConfigurationError(f"cannot detect major version: {e}") from e

    try:
        return int(content.split('.')[0])
    except ValueError:
        raise ConfigurationError(
            f"cannot detect major version: unexpected content {content!r} in {version_file}"
        ) from None
