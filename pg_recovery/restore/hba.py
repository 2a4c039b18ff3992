"""Transient client authentication used while the superuser password is set."""

import getpass
import logging
from pathlib import Path

from pg_recovery.restore.constants import HBA_CONF, IDENT_CONF, SUPERUSER
from pg_recovery.utils.errors import IOFailure
from pg_recovery.utils.fileutils import write_string_to_file

logger = logging.getLogger(__name__)

# Every local socket connection, no password, identity checked through the "local" map
RESTORE_HBA_RULES = "local all all peer map=local\n"


def write_user_maps(pgdata, os_user=None):
    """Map the OS user running PostgreSQL onto the superuser for the "local" map."""
    os_user = os_user or getpass.getuser()
    try:
        write_string_to_file(Path(pgdata) / IDENT_CONF, f"local {os_user} {SUPERUSER}\n")
    except OSError as e:
        raise IOFailure(f"cannot write {IDENT_CONF}: {e}") from e


def write_restore_hba_conf(pgdata, os_user=None):
    """
    Allow passwordless local access so the password can be set after start.

    Both files are replaced on every call. Narrowing access again is left to
    the bootstrap that runs after the restore.
    """
    try:
        write_string_to_file(Path(pgdata) / HBA_CONF, RESTORE_HBA_RULES)
    except OSError as e:
        raise IOFailure(f"cannot write {HBA_CONF}: {e}") from e

    write_user_maps(pgdata, os_user)
    logger.info(f"Wrote restore access rules to {Path(pgdata) / HBA_CONF}")
