import pytest

from pg_recovery.restore.instance import ActiveInstance
from pg_recovery.utils.errors import BackupNotFound


def backup_manifest(name='backup-1', destination='s3://bucket/path', server='srv1',
                    backup_id='B20240101', cluster='srv1', endpoint=None, encryption=None):
    status = {
        'destinationPath': destination,
        'serverName': server,
        'backupId': backup_id,
    }
    if endpoint:
        status['endpointURL'] = endpoint
    if encryption:
        status['encryption'] = encryption
    return {
        'metadata': {'name': name, 'namespace': 'default'},
        'spec': {'cluster': {'name': cluster}},
        'status': status,
    }


class FakeApiClient:
    def __init__(self, backups=None, clusters=None):
        self.backups = backups or {}
        self.clusters = clusters or {}
        self.calls = []

    def get_backup(self, namespace, name):
        self.calls.append(('backup', namespace, name))
        if (namespace, name) not in self.backups:
            raise BackupNotFound(namespace, name)
        return self.backups[(namespace, name)]

    def get_cluster(self, namespace, name):
        self.calls.append(('cluster', namespace, name))
        return self.clusters.get((namespace, name), {'spec': {}})


class FakeRunner:
    """Records commands. on_run(cmd) may return a result dict to override success."""

    def __init__(self, on_run=None):
        self.commands = []
        self.output_files = []
        self.on_run = on_run

    def run_command(self, cmd, env=None, cwd=None, output_file=None):
        self.commands.append(list(cmd))
        self.output_files.append(output_file)
        result = {
            'success': True,
            'error': None,
            'duration': 0.1,
            'returncode': 0,
            'stdout': '',
            'stderr': '',
        }
        if self.on_run:
            result.update(self.on_run(cmd) or {})
        return result


class FakeCursor:
    def __init__(self, connection):
        self.connection = connection

    def __enter__(self):
        return self

    def __exit__(self, *_args):
        return False

    def execute(self, statement, params=None):
        if self.connection.execute_error is not None and not statement.startswith('SELECT'):
            raise self.connection.execute_error
        self.connection.executed.append((statement, params))

    def fetchone(self):
        status = self.connection.recovery_states.pop(0)
        if isinstance(status, Exception):
            raise status
        return (status,)


class FakeConnection:
    def __init__(self, recovery_states=None, execute_error=None):
        self.recovery_states = list(recovery_states or [False])
        self.execute_error = execute_error
        self.executed = []
        self.closed = False

    def cursor(self):
        return FakeCursor(self)

    def close(self):
        self.closed = True

    def statements(self, startswith):
        return [s for s in self.executed if s[0].startswith(startswith)]


class FakeInstance:
    def __init__(self, connection=None, stop_error=None):
        self.connection = connection or FakeConnection()
        self.stop_error = stop_error
        self.events = []

    def start(self):
        self.events.append('start')

    def stop(self):
        self.events.append('stop')
        if self.stop_error is not None:
            raise self.stop_error

    def active(self):
        return ActiveInstance(self)

    def superuser_connection(self):
        self.events.append('connect')
        return self.connection


@pytest.fixture
def pgdata(tmp_path):
    data = tmp_path / 'pgdata'
    data.mkdir()
    return data


def write_pg_version(pgdata, version):
    (pgdata / 'PG_VERSION').write_text(f"{version}\n")
