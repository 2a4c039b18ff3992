"""Backup metadata loaded from the Backup resource."""

import logging
from typing import NamedTuple, Optional

from pg_recovery.utils.errors import ConfigurationError

logger = logging.getLogger(__name__)


class BackupDescriptor(NamedTuple):
    """Where the base backup lives in object storage and how to read it."""

    destination_path: str
    server_name: str
    backup_id: str
    cluster_name: str
    endpoint_url: Optional[str] = None
    encryption: Optional[str] = None

    @classmethod
    def from_manifest(cls, manifest: dict) -> 'BackupDescriptor':
        """
        Build a descriptor from a Backup manifest.

        Reads status.destinationPath, status.serverName, status.backupId,
        status.endpointURL, status.encryption and spec.cluster.name. The
        cluster name falls back to the server name when spec.cluster is absent.

        Raises ConfigurationError when a required status field is missing.
        """
        status = manifest.get('status') or {}
        spec = manifest.get('spec') or {}
        name = (manifest.get('metadata') or {}).get('name', '<unnamed>')

        required = {
            'destinationPath': status.get('destinationPath'),
            'serverName': status.get('serverName'),
            'backupId': status.get('backupId'),
        }
        missing = [key for key, value in required.items() if not value]
        if missing:
            raise ConfigurationError(
                f"malformed backup descriptor {name}: missing status.{', status.'.join(missing)}"
            )

        cluster_name = (spec.get('cluster') or {}).get('name') or status['serverName']

        return cls(
            destination_path=status['destinationPath'],
            server_name=status['serverName'],
            backup_id=status['backupId'],
            cluster_name=cluster_name,
            endpoint_url=status.get('endpointURL') or None,
            encryption=status.get('encryption') or None,
        )


def load_backup(api_client, namespace: str, name: str) -> BackupDescriptor:
    """Fetch the Backup resource once. A missing backup is a configuration error, not retried."""
    manifest = api_client.get_backup(namespace, name)
    backup = BackupDescriptor.from_manifest(manifest)
    logger.info(f"Loaded backup {namespace}/{name}: id={backup.backup_id} "
                f"server={backup.server_name} destination={backup.destination_path}")
    return backup
