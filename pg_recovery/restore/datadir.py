"""Populate PGDATA from object storage with barman-cloud-restore."""

import logging
from typing import List

from pg_recovery.utils.errors import RestoreFailed
from pg_recovery.utils.subprocess_utils import SubprocessRunner

logger = logging.getLogger(__name__)

BARMAN_CLOUD_RESTORE = 'barman-cloud-restore'


def build_restore_options(backup, pgdata) -> List[str]:
    """
    Arguments for barman-cloud-restore.

    Optional flags come first, then the positional arguments in the order
    the tool expects: destination path, server name, backup id, target dir.
    """
    options = []
    if backup.endpoint_url:
        options.extend(['--endpoint-url', backup.endpoint_url])
    if backup.encryption:
        options.extend(['-e', backup.encryption])
    options.extend([
        backup.destination_path,
        backup.server_name,
        backup.backup_id,
        str(pgdata),
    ])
    return options


def restore_data_dir(backup, pgdata, runner=None):
    """
    Restore PGDATA from the base backup.

    Blocks until the tool exits. Raises RestoreFailed carrying the captured
    stdout and stderr when the tool cannot be spawned, times out or exits
    nonzero.
    """
    runner = runner or SubprocessRunner()
    options = build_restore_options(backup, pgdata)
    logger.info(f"Starting {BARMAN_CLOUD_RESTORE} with options: {options}")

    result = runner.run_command([BARMAN_CLOUD_RESTORE] + options)

    if not result['success']:
        logger.error(f"Can't restore backup {backup.backup_id}: {result['error']}")
        if result['stdout']:
            logger.error(f"  stdout: {result['stdout']}")
        if result['stderr']:
            logger.error(f"  stderr: {result['stderr']}")
        raise RestoreFailed(
            f"{BARMAN_CLOUD_RESTORE} failed: {result['error']}",
            stdout=result['stdout'],
            stderr=result['stderr'],
            returncode=result['returncode'],
        )

    logger.info(f"Restore completed in {result['duration']:.1f} seconds")
    if result['stdout']:
        logger.info(f"  output: {result['stdout'].strip()}")
