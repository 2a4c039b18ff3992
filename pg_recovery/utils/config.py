"""Configuration loader for the restore workflow."""

import os
from pathlib import Path
from typing import Dict, NamedTuple, Optional

from dotenv import find_dotenv, load_dotenv

from pg_recovery.utils.errors import ConfigurationError

DEFAULT_API_GROUP = 'postgresql.k8s.enterprisedb.io'
DEFAULT_API_VERSION = 'v1'
DEFAULT_SOCKET_DIR = '/controller/run'
DEFAULT_PORT = 5432
DEFAULT_POLL_INTERVAL = 5.0
DEFAULT_START_TIMEOUT = 3600

TRUE_VALUES = ('1', 'true', 'yes', 'on')


class RestoreRequest(NamedTuple):
    """What to restore and where. Built once, never modified."""

    pgdata: str
    namespace: str
    backup_name: str
    cluster_name: str
    pod_name: str
    password_file: str
    recovery_target: str = ''
    # A temporary instance only exists to derive defaults and is never a restore target
    temporary: bool = False


class RestoreSettings:
    """Load and validate restore settings from the environment and an optional .env file."""

    REQUIRED_VARS = {
        'PGDATA': 'pgdata',
        'POD_NAMESPACE': 'namespace',
        'BACKUP_NAME': 'backup_name',
        'CLUSTER_NAME': 'cluster_name',
        'POD_NAME': 'pod_name',
        'PGPASSWORD_FILE': 'password_file',
    }

    def __init__(self, env_file=None, overrides: Optional[Dict[str, str]] = None):
        """
        Load configuration from environment file.

        overrides maps environment variable names to values that win over
        both the process environment and the .env file (CLI flags).
        """
        if env_file:
            if not os.path.exists(env_file):
                raise FileNotFoundError(f"Environment file not found: {env_file}")
            load_dotenv(env_file)
        else:
            load_dotenv(find_dotenv(usecwd=True))

        self._overrides = {k: v for k, v in (overrides or {}).items() if v is not None}
        self._load_and_validate()

    def _get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        if name in self._overrides:
            return self._overrides[name]
        return os.getenv(name, default)

    def _load_and_validate(self):
        """Load environment variables and validate required fields."""
        missing = [var for var in self.REQUIRED_VARS if not self._get(var)]
        if missing:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing)}"
            )

        fields = {field: self._get(var) for var, field in self.REQUIRED_VARS.items()}
        self.request = RestoreRequest(
            recovery_target=_as_directive(self._get('RECOVERY_TARGET', '')),
            temporary=(self._get('TEMPORARY', '') or '').strip().lower() in TRUE_VALUES,
            **fields
        )

        # Recovery polling: fixed interval, unbounded unless a limit is given
        self.poll_interval = self._number('RECOVERY_POLL_INTERVAL', DEFAULT_POLL_INTERVAL, float)
        if self.poll_interval <= 0:
            raise ConfigurationError("RECOVERY_POLL_INTERVAL must be positive")
        self.poll_limit = self._number('RECOVERY_POLL_LIMIT', None, int)
        if self.poll_limit is not None and self.poll_limit < 1:
            raise ConfigurationError("RECOVERY_POLL_LIMIT must be at least 1")

        restore_timeout_hours = self._number('RESTORE_TIMEOUT_HOURS', None, float)
        self.restore_timeout = restore_timeout_hours * 3600 if restore_timeout_hours else None

        # Local instance control
        self.socket_dir = self._get('PG_SOCKET_DIR', DEFAULT_SOCKET_DIR)
        self.port = self._number('PGPORT', DEFAULT_PORT, int)
        self.pg_ctl = self._get('PG_CTL', 'pg_ctl')
        self.start_timeout = self._number('PG_START_TIMEOUT', DEFAULT_START_TIMEOUT, int)

        # Kubernetes API
        self.api_group = self._get('API_GROUP', DEFAULT_API_GROUP)
        self.api_version = self._get('API_VERSION', DEFAULT_API_VERSION)

        log_dir = self._get('RESTORE_LOG_DIR')
        self.log_dir = Path(log_dir) if log_dir else None

    def _number(self, name, default, kind):
        raw = self._get(name)
        if raw is None or raw.strip() == '':
            return default
        try:
            return kind(raw)
        except ValueError:
            raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None


def _as_directive(value: str) -> str:
    """Recovery target lines are appended verbatim, one directive per line."""
    if value and not value.endswith('\n'):
        return value + '\n'
    return value
