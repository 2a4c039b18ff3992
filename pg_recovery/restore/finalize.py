"""Bring the restored instance out of recovery and align it with the cluster."""

import logging
import time
from contextlib import closing
from pathlib import Path

import psycopg2

from pg_recovery.restore.constants import (
    AUTO_CONF,
    CERTIFICATES_DIR,
    SIGNAL_FILE_MAJOR_VERSION,
    SUPERUSER,
)
from pg_recovery.restore.seed_config import quote_value
from pg_recovery.restore.waiter import DEFAULT_POLICY, is_in_recovery, wait_until_recovery_finishes
from pg_recovery.utils.errors import ConfigurationError, ConnectionFailure, IOFailure
from pg_recovery.utils.fileutils import read_file, write_string_to_file
from pg_recovery.utils.pgversion import get_major_version

logger = logging.getLogger(__name__)

STREAMING_REPLICA_USER = 'streaming_replica'

ALTER_PASSWORD_STATEMENT = f"ALTER USER {SUPERUSER} PASSWORD %s"


def read_superuser_password(password_file) -> str:
    """The password is used verbatim. There is no default."""
    try:
        password = read_file(password_file)
    except OSError as e:
        raise ConfigurationError(f"cannot read superuser password file {password_file}: {e}") from e
    if not password:
        raise ConfigurationError(f"superuser password file {password_file} is empty")
    return password


def build_primary_conninfo(cluster_name: str, pod_name: str) -> str:
    return ' '.join([
        f"host={cluster_name}-rw",
        f"user={STREAMING_REPLICA_USER}",
        "port=5432",
        f"sslkey={CERTIFICATES_DIR}/{STREAMING_REPLICA_USER}.key",
        f"sslcert={CERTIFICATES_DIR}/{STREAMING_REPLICA_USER}.crt",
        f"sslrootcert={CERTIFICATES_DIR}/server-ca.crt",
        f"application_name={pod_name}",
        "sslmode=require",
    ])


def configure_postgres_auto_conf(pgdata, cluster_name: str, pod_name: str):
    """Write the settings this pod needs once it follows the new primary."""
    contents = (
        f"cluster_name = {quote_value(cluster_name)}\n"
        f"primary_conninfo = {quote_value(build_primary_conninfo(cluster_name, pod_name))}\n"
        "recovery_target_timeline = 'latest'\n"
    )
    try:
        write_string_to_file(Path(pgdata) / AUTO_CONF, contents)
    except OSError as e:
        raise IOFailure(f"while configuring replica: {e}") from e
    logger.info(f"Wrote {AUTO_CONF} for pod {pod_name} of cluster {cluster_name}")


def set_superuser_password(connection, password: str):
    # Bound parameter: psycopg2 quotes the password as a SQL literal
    try:
        with connection.cursor() as cursor:
            cursor.execute(ALTER_PASSWORD_STATEMENT, (password,))
    except psycopg2.Error as e:
        raise ConnectionFailure(f"ALTER USER {SUPERUSER} error: {e}") from e
    logger.info(f"Superuser {SUPERUSER} password updated")


def configure_instance_after_restore(request, instance, policy=DEFAULT_POLICY, sleep=time.sleep):
    """
    Start the instance, wait for WAL replay to end, then set the superuser password.

    Starting the server begins replaying the WAL archived after the backup;
    once replay ends the server promotes itself on a new timeline. The
    instance is stopped before this function returns, whatever the outcome.
    """
    password = read_superuser_password(request.password_file)
    major_version = get_major_version(request.pgdata)

    with instance.active():
        with closing(instance.superuser_connection()) as connection:
            wait_until_recovery_finishes(
                lambda: is_in_recovery(connection), policy=policy, sleep=sleep
            )
            set_superuser_password(connection, password)

    if major_version >= SIGNAL_FILE_MAJOR_VERSION:
        configure_postgres_auto_conf(request.pgdata, request.cluster_name, request.pod_name)
