"""Exception hierarchy for the restore workflow."""


class RecoveryError(Exception):
    """Base class for every error raised by the restore workflow."""


class ConfigurationError(RecoveryError):
    """Missing or invalid input: env settings, password file, backup manifest."""


class BackupNotFound(ConfigurationError):
    """The Backup resource does not exist in the namespace."""

    def __init__(self, namespace: str, name: str):
        super().__init__(f"Backup {namespace}/{name} not found")
        self.namespace = namespace
        self.name = name


class ClusterApiError(RecoveryError):
    """The Kubernetes API could not be reached or answered with an error."""


class IOFailure(RecoveryError):
    """A file under PGDATA could not be written, copied or appended to."""


class CommandFailed(RecoveryError):
    """An external command exited nonzero, could not be spawned or timed out.

    The captured output is kept verbatim for diagnosis.
    """

    def __init__(self, message: str, stdout: str = '', stderr: str = '', returncode: int = -1):
        super().__init__(message)
        self.stdout = stdout
        self.stderr = stderr
        self.returncode = returncode


class RestoreFailed(CommandFailed):
    """barman-cloud-restore did not complete."""


class InstanceError(CommandFailed):
    """pg_ctl could not start or stop the instance."""


class InstanceInRecovery(RecoveryError):
    """PostgreSQL is still replaying WAL. Retryable."""

    def __init__(self):
        super().__init__("instance in recovery")


class ConnectionFailure(RecoveryError):
    """The live instance could not be queried. Not retryable."""
