"""Restore a PostgreSQL instance from a backup in object storage."""

import logging
import time

from pg_recovery.restore.backup import load_backup
from pg_recovery.restore.datadir import restore_data_dir
from pg_recovery.restore.finalize import configure_instance_after_restore
from pg_recovery.restore.hba import write_restore_hba_conf
from pg_recovery.restore.instance import Instance
from pg_recovery.restore.recovery_conf import write_restore_wal_config
from pg_recovery.restore.seed_config import load_cluster_parameters, write_initial_postgresql_conf
from pg_recovery.restore.waiter import DEFAULT_POLICY
from pg_recovery.utils.errors import ConfigurationError
from pg_recovery.utils.pgversion import get_major_version
from pg_recovery.utils.subprocess_utils import SubprocessRunner

logger = logging.getLogger(__name__)


class Restore:
    """
    Main restore orchestrator.

    Steps run strictly in order and every failure propagates: no step is
    attempted after one has failed.
    """

    def __init__(self, request, api_client, runner=None, instance=None,
                 policy=DEFAULT_POLICY, sleep=time.sleep):
        self.request = request
        self.api_client = api_client
        self.runner = runner or SubprocessRunner()
        self.instance = instance or Instance(
            request.pgdata,
            namespace=request.namespace,
            cluster_name=request.cluster_name,
            pod_name=request.pod_name,
        )
        self.policy = policy
        self.sleep = sleep

    def section(self, step: int, title: str):
        logger.info("-" * 70)
        logger.info(f"STEP {step}: {title}")
        logger.info("-" * 70)

    def run(self):
        request = self.request
        if request.temporary:
            raise ConfigurationError("a temporary instance cannot be used as a restore target")

        logger.info("=" * 70)
        logger.info(f"Restoring {request.namespace}/{request.cluster_name} "
                    f"from backup {request.backup_name} into {request.pgdata}")
        logger.info("=" * 70)

        self.section(1, "Load backup metadata")
        backup = load_backup(self.api_client, request.namespace, request.backup_name)

        self.section(2, "Restore data directory")
        restore_data_dir(backup, request.pgdata, runner=self.runner)
        major_version = get_major_version(request.pgdata)
        logger.info(f"Restored data directory is PostgreSQL {major_version}")

        self.section(3, "Write cluster configuration")
        parameters = load_cluster_parameters(self.api_client, request.namespace, request.cluster_name)
        write_initial_postgresql_conf(
            request.pgdata, request.cluster_name, request.namespace, parameters, major_version
        )

        self.section(4, "Write restore access rules")
        write_restore_hba_conf(request.pgdata)

        self.section(5, "Write recovery configuration")
        write_restore_wal_config(request.pgdata, backup, request.recovery_target)

        self.section(6, "Replay WAL and configure instance")
        configure_instance_after_restore(request, self.instance, policy=self.policy, sleep=self.sleep)

        logger.info("=" * 70)
        logger.info("Restore completed successfully")
        logger.info("=" * 70)
