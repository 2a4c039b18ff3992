"""
Replace the configuration carried by the backup with the cluster's current one.

The restored PGDATA holds the configuration of the cluster the backup was
taken from. desired_configuration() computes the files the current cluster
wants, in memory, and write_initial_postgresql_conf() lays them over the
restored data directory.
"""

import logging
from pathlib import Path
from typing import Dict, Mapping, Optional

from pg_recovery.restore.constants import AUTO_CONF, CERTIFICATES_DIR, CUSTOM_CONF, POSTGRESQL_CONF
from pg_recovery.utils.config import DEFAULT_SOCKET_DIR
from pg_recovery.utils.errors import IOFailure
from pg_recovery.utils.fileutils import append_string_to_file, write_string_to_file

logger = logging.getLogger(__name__)

LOG_DIR = '/controller/log'
ARCHIVE_COMMAND = '/controller/manager wal-archive %p'

# Certificates are provisioned after the restore
DISABLED_SSL = "ssl = 'off'\n"

AUTO_CONF_HEADER = (
    "# Do not edit this file manually!\n"
    "# It will be overwritten by the ALTER SYSTEM command.\n"
)

# Overridable through spec.postgresql.parameters
DEFAULT_PARAMETERS = {
    'dynamic_shared_memory_type': 'posix',
    'log_destination': 'csvlog',
    'log_directory': LOG_DIR,
    'log_filename': 'postgres',
    'log_rotation_age': '0',
    'log_rotation_size': '0',
    'log_truncate_on_rotation': 'false',
    'logging_collector': 'on',
    'max_parallel_workers': '32',
    'max_replication_slots': '32',
    'max_worker_processes': '32',
    'shared_preload_libraries': '',
}

# Required by the operator, user values are ignored
FIXED_PARAMETERS = {
    'archive_command': ARCHIVE_COMMAND,
    'archive_mode': 'on',
    'archive_timeout': '5min',
    'full_page_writes': 'on',
    'hot_standby': 'true',
    'listen_addresses': '*',
    'port': '5432',
    'ssl': 'on',
    'ssl_ca_file': f'{CERTIFICATES_DIR}/client-ca.crt',
    'ssl_cert_file': f'{CERTIFICATES_DIR}/server.crt',
    'ssl_key_file': f'{CERTIFICATES_DIR}/server.key',
    'unix_socket_directories': DEFAULT_SOCKET_DIR,
    'wal_level': 'logical',
    'wal_log_hints': 'on',
}


def quote_value(value) -> str:
    """Quote a configuration value as a PostgreSQL string literal."""
    return "'" + str(value).replace("'", "''") + "'"


def _wal_keep_parameter(major_version: int) -> Dict[str, str]:
    # PostgreSQL 13 replaced wal_keep_segments with wal_keep_size
    if major_version >= 13:
        return {'wal_keep_size': '512MB'}
    return {'wal_keep_segments': '32'}


def desired_configuration(cluster_name: str,
                          namespace: str,
                          parameters: Optional[Mapping[str, object]],
                          major_version: int) -> Dict[str, str]:
    """
    Compute postgresql.conf, custom.conf and postgresql.auto.conf for a cluster.

    Pure: reads nothing and writes nothing. Returns a dict of file name to
    content.
    """
    settings = dict(DEFAULT_PARAMETERS)
    settings.update(_wal_keep_parameter(major_version))

    ignored = []
    for key, value in (parameters or {}).items():
        if key in FIXED_PARAMETERS:
            ignored.append(key)
            continue
        settings[key] = str(value)
    if ignored:
        logger.warning(f"Ignoring fixed parameters set on cluster {namespace}/{cluster_name}: "
                       f"{', '.join(sorted(ignored))}")

    settings.update(FIXED_PARAMETERS)

    custom = ''.join(f"{key} = {quote_value(settings[key])}\n" for key in sorted(settings))
    main = (
        f"# Configuration of cluster {namespace}/{cluster_name}\n"
        "# Generated on restore, local changes will be lost\n"
        f"include {quote_value(CUSTOM_CONF)}\n"
    )

    return {
        POSTGRESQL_CONF: main,
        CUSTOM_CONF: custom,
        AUTO_CONF: AUTO_CONF_HEADER,
    }


def load_cluster_parameters(api_client, namespace: str, cluster_name: str) -> Dict[str, object]:
    """spec.postgresql.parameters of the Cluster resource, empty when unset."""
    cluster = api_client.get_cluster(namespace, cluster_name)
    postgresql = (cluster.get('spec') or {}).get('postgresql') or {}
    return dict(postgresql.get('parameters') or {})


def write_initial_postgresql_conf(pgdata,
                                  cluster_name: str,
                                  namespace: str,
                                  parameters: Optional[Mapping[str, object]],
                                  major_version: int) -> Dict[str, str]:
    """Overwrite the restored configuration files and disable SSL until certificates exist."""
    pgdata = Path(pgdata)
    files = desired_configuration(cluster_name, namespace, parameters, major_version)

    for name in (POSTGRESQL_CONF, CUSTOM_CONF, AUTO_CONF):
        try:
            write_string_to_file(pgdata / name, files[name])
        except OSError as e:
            raise IOFailure(f"while creating {name}: {e}") from e
        logger.info(f"Wrote {pgdata / name}")

    try:
        append_string_to_file(pgdata / CUSTOM_CONF, DISABLED_SSL)
    except OSError as e:
        raise IOFailure(f"cannot disable ssl in {CUSTOM_CONF}: {e}") from e

    return files
