"""Read-only access to the cluster's custom resources."""

import logging

from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException

from pg_recovery.utils.config import DEFAULT_API_GROUP, DEFAULT_API_VERSION
from pg_recovery.utils.errors import BackupNotFound, ClusterApiError

logger = logging.getLogger(__name__)


class ClusterApiClient:
    """Fetch Backup and Cluster manifests by namespace and name."""

    def __init__(self, custom_api=None, group=DEFAULT_API_GROUP, version=DEFAULT_API_VERSION):
        self.custom_api = custom_api if custom_api is not None else client.CustomObjectsApi()
        self.group = group
        self.version = version

    @classmethod
    def from_environment(cls, group=DEFAULT_API_GROUP, version=DEFAULT_API_VERSION):
        """Use the pod service account, or the local kubeconfig outside a cluster."""
        try:
            config.load_incluster_config()
            logger.info("Using in-cluster Kubernetes configuration")
        except ConfigException:
            try:
                config.load_kube_config()
            except ConfigException as e:
                raise ClusterApiError(f"cannot configure Kubernetes client: {e}") from e
            logger.info("Using local kubeconfig")
        return cls(client.CustomObjectsApi(), group=group, version=version)

    def get_backup(self, namespace: str, name: str) -> dict:
        try:
            return self._get(namespace, 'backups', name)
        except ApiException as e:
            if e.status == 404:
                raise BackupNotFound(namespace, name) from e
            raise ClusterApiError(f"cannot read Backup {namespace}/{name}: {e.reason}") from e

    def get_cluster(self, namespace: str, name: str) -> dict:
        try:
            return self._get(namespace, 'clusters', name)
        except ApiException as e:
            raise ClusterApiError(f"cannot read Cluster {namespace}/{name}: {e.reason}") from e

    def _get(self, namespace, plural, name):
        return self.custom_api.get_namespaced_custom_object(
            group=self.group,
            version=self.version,
            namespace=namespace,
            plural=plural,
            name=name,
        )
