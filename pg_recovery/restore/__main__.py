#!/usr/bin/env python3
"""
PostgreSQL Restore From Object Storage

Restores the instance data directory from a barman-cloud backup, replays
WAL until the instance promotes itself and sets the superuser password.
"""

import logging
import sys
from argparse import ArgumentParser
from datetime import datetime

from pg_recovery.restore.constants import PG_CTL_LOG
from pg_recovery.restore.instance import Instance
from pg_recovery.restore.waiter import RecoveryWaitPolicy
from pg_recovery.restore.workflow import Restore
from pg_recovery.utils.config import RestoreSettings
from pg_recovery.utils.errors import CommandFailed, RecoveryError
from pg_recovery.utils.fileutils import ensure_directory_exists
from pg_recovery.utils.kube import ClusterApiClient
from pg_recovery.utils.subprocess_utils import SubprocessRunner

# CLI flag -> environment variable it overrides
FLAG_VARIABLES = {
    'pgdata': 'PGDATA',
    'namespace': 'POD_NAMESPACE',
    'backup_name': 'BACKUP_NAME',
    'cluster_name': 'CLUSTER_NAME',
    'pod_name': 'POD_NAME',
    'password_file': 'PGPASSWORD_FILE',
    'recovery_target': 'RECOVERY_TARGET',
}


def setup_logging(log_dir=None):
    """Setup console logging, plus a dated log file when log_dir is set."""
    handlers = [logging.StreamHandler(sys.stdout)]
    log_file = None
    if log_dir:
        ensure_directory_exists(log_dir)
        log_file = log_dir / f"restore-{datetime.now().strftime('%Y-%m-%d')}.log"
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s [%(levelname)s] %(message)s',
        handlers=handlers
    )
    return str(log_file) if log_file else None


def build_parser():
    parser = ArgumentParser(description='Restore a PostgreSQL instance from a backup in object storage')
    parser.add_argument('env_file', nargs='?', help='Path to .env file (default: .env in current directory)')
    parser.add_argument('--pgdata', help='Target data directory')
    parser.add_argument('--namespace', help='Namespace of the Backup and Cluster resources')
    parser.add_argument('--backup-name', help='Name of the Backup resource')
    parser.add_argument('--cluster-name', help='Name of the Cluster owning this instance')
    parser.add_argument('--pod-name', help='Name of this pod')
    parser.add_argument('--password-file', help='File holding the superuser password')
    parser.add_argument('--recovery-target', help='Recovery target directive, e.g. "recovery_target_time = \'...\'"')
    return parser


def main(argv=None):
    """Main restore entry point."""
    args = build_parser().parse_args(argv)
    overrides = {var: getattr(args, flag) for flag, var in FLAG_VARIABLES.items()}

    try:
        settings = RestoreSettings(args.env_file, overrides=overrides)
    except (FileNotFoundError, RecoveryError) as e:
        print(f"ERROR: {e}")
        return 1

    log_file = setup_logging(settings.log_dir)
    if log_file:
        logging.info(f"Logging to {log_file}")

    request = settings.request
    try:
        api_client = ClusterApiClient.from_environment(settings.api_group, settings.api_version)
        instance = Instance(
            request.pgdata,
            namespace=request.namespace,
            cluster_name=request.cluster_name,
            pod_name=request.pod_name,
            socket_dir=settings.socket_dir,
            port=settings.port,
            pg_ctl=settings.pg_ctl,
            start_timeout=settings.start_timeout,
            log_file=settings.log_dir / PG_CTL_LOG if settings.log_dir else None,
        )
        policy = RecoveryWaitPolicy(interval=settings.poll_interval, max_attempts=settings.poll_limit)
        Restore(
            request,
            api_client,
            runner=SubprocessRunner(timeout=settings.restore_timeout),
            instance=instance,
            policy=policy,
        ).run()
    except CommandFailed as e:
        logging.error(f"Restore FAILED: {e}")
        if e.stderr:
            logging.error(f"  stderr: {e.stderr}")
        return 1
    except RecoveryError as e:
        logging.error(f"Restore FAILED: {e}")
        return 1
    except KeyboardInterrupt:
        logging.error("Restore interrupted by user")
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
