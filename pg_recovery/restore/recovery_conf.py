"""
Recovery configuration written after the base backup is restored.

PostgreSQL 12 moved recovery settings into the main configuration and
replaced recovery.conf with an empty recovery.signal marker. Each layout is
one scheme class; recovery_scheme_for() picks exactly one per major version,
so the two layouts never coexist in a data directory.
"""

import logging
from pathlib import Path

from pg_recovery.restore.constants import (
    AUTO_CONF,
    CUSTOM_CONF,
    RECOVERY_CONF,
    RECOVERY_SIGNAL,
    SIGNAL_FILE_MAJOR_VERSION,
)
from pg_recovery.restore.seed_config import quote_value
from pg_recovery.utils.errors import IOFailure
from pg_recovery.utils.fileutils import append_string_to_file, truncate_file, write_string_to_file
from pg_recovery.utils.pgversion import get_major_version

logger = logging.getLogger(__name__)

BARMAN_CLOUD_WAL_RESTORE = 'barman-cloud-wal-restore'

# The restored instance is not the archiving primary yet
DISABLED_ARCHIVE_COMMAND = "archive_command = 'cd .'\n"


def build_restore_command(backup) -> str:
    """
    Command PostgreSQL runs to fetch each WAL segment during replay.

    %f and %p are substituted by PostgreSQL with the segment name and the
    destination path.
    """
    cmd = [BARMAN_CLOUD_WAL_RESTORE]
    if backup.encryption:
        cmd.extend(['-e', backup.encryption])
    if backup.endpoint_url:
        cmd.extend(['--endpoint-url', backup.endpoint_url])
    cmd.extend([backup.destination_path, backup.cluster_name, '%f', '%p'])
    return ' '.join(cmd)


def build_recovery_contents(backup, recovery_target: str = '') -> str:
    return (
        "recovery_target_action = promote\n"
        f"restore_command = {quote_value(build_restore_command(backup))}\n"
        f"{recovery_target}"
    )


class SignalBasedRecovery:
    """PostgreSQL 12 and later: settings in custom.conf plus recovery.signal."""

    name = 'signal'

    def write(self, pgdata, contents: str):
        pgdata = Path(pgdata)
        append_string_to_file(pgdata / CUSTOM_CONF, contents)
        truncate_file(pgdata / AUTO_CONF)
        truncate_file(pgdata / RECOVERY_SIGNAL)


class LegacyRecovery:
    """Before PostgreSQL 12: everything in recovery.conf."""

    name = 'legacy'

    def write(self, pgdata, contents: str):
        write_string_to_file(Path(pgdata) / RECOVERY_CONF, contents)


def recovery_scheme_for(major_version: int):
    if major_version >= SIGNAL_FILE_MAJOR_VERSION:
        return SignalBasedRecovery()
    return LegacyRecovery()


def write_restore_wal_config(pgdata, backup, recovery_target: str = ''):
    """
    Let PostgreSQL replay WAL from object storage and then promote.

    Reads the major version from the restored PGDATA. Any write failure
    raises IOFailure: an instance with partial recovery settings must not
    be started.
    """
    major = get_major_version(pgdata)
    scheme = recovery_scheme_for(major)
    contents = build_recovery_contents(backup, recovery_target)

    logger.info(f"Generated recovery configuration ({scheme.name}, PostgreSQL {major}):\n{contents}")

    try:
        append_string_to_file(Path(pgdata) / CUSTOM_CONF, DISABLED_ARCHIVE_COMMAND)
        scheme.write(pgdata, contents)
    except OSError as e:
        raise IOFailure(f"cannot write recovery config: {e}") from e

    return scheme
