"""Local PostgreSQL instance bound to the restored data directory."""

import logging
from pathlib import Path

import psycopg2

from pg_recovery.restore.constants import PG_CTL_LOG, SUPERUSER
from pg_recovery.utils.config import DEFAULT_PORT, DEFAULT_SOCKET_DIR, DEFAULT_START_TIMEOUT
from pg_recovery.utils.errors import ConnectionFailure, InstanceError
from pg_recovery.utils.subprocess_utils import SubprocessRunner

logger = logging.getLogger(__name__)


class Instance:
    """Start, stop and connect to the PostgreSQL server owning pgdata."""

    def __init__(self, pgdata, namespace=None, cluster_name=None, pod_name=None,
                 socket_dir=DEFAULT_SOCKET_DIR, port=DEFAULT_PORT, pg_ctl='pg_ctl',
                 start_timeout=DEFAULT_START_TIMEOUT, log_file=None, runner=None):
        self.pgdata = str(pgdata)
        self.namespace = namespace
        self.cluster_name = cluster_name
        self.pod_name = pod_name
        self.socket_dir = socket_dir
        self.port = port
        self.pg_ctl = pg_ctl
        self.start_timeout = start_timeout
        # Server output, kept off pg_ctl's pipes since the postmaster outlives pg_ctl
        self.log_file = str(log_file or Path(self.pgdata) / PG_CTL_LOG)
        self.runner = runner or SubprocessRunner()

    def _pg_ctl(self, action, *args, output_file=None):
        cmd = [self.pg_ctl, '-D', self.pgdata] + list(args) + [action]
        logger.info(f"Running {' '.join(cmd)}")
        result = self.runner.run_command(cmd, output_file=output_file)
        if not result['success']:
            logger.error(f"pg_ctl {action} failed: {result['error']}")
            if result['stderr']:
                logger.error(f"  stderr: {result['stderr']}")
            elif result['stdout']:
                logger.error(f"  output: {result['stdout']}")
            raise InstanceError(
                f"pg_ctl {action} failed: {result['error']}",
                stdout=result['stdout'],
                stderr=result['stderr'],
                returncode=result['returncode'],
            )

    def start(self):
        options = f"-c port={self.port} -c unix_socket_directories={self.socket_dir}"
        self._pg_ctl('start', '-l', self.log_file, '-w', '-t', str(self.start_timeout), '-o', options,
                     output_file=self.log_file)
        logger.info(f"Instance started on {self.socket_dir}:{self.port}")

    def stop(self):
        self._pg_ctl('stop', '-m', 'fast', '-w')
        logger.info("Instance stopped")

    def active(self):
        """Context manager keeping the instance running for the duration of the block."""
        return ActiveInstance(self)

    def superuser_connection(self):
        """Autocommit connection as the superuser over the local socket."""
        try:
            connection = psycopg2.connect(
                host=self.socket_dir,
                port=self.port,
                user=SUPERUSER,
                dbname='postgres',
            )
        except psycopg2.Error as e:
            raise ConnectionFailure(f"cannot connect to the local instance: {e}") from e
        connection.autocommit = True
        return connection


class ActiveInstance:
    """
    Start the instance on enter and stop it on every exit path.

    If the block failed, a stop failure is logged and the block's exception
    propagates. If the block succeeded, a stop failure is raised.
    """

    def __init__(self, instance):
        self.instance = instance
        self._started = False

    def __enter__(self):
        self.instance.start()
        self._started = True
        return self.instance

    def __exit__(self, exc_type, exc_val, exc_tb):
        if not self._started:
            return False
        self._started = False
        try:
            self.instance.stop()
        except InstanceError:
            if exc_type is None:
                raise
            logger.exception("Could not stop the instance after a failure")
        return False
