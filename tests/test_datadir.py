import pytest

from conftest import FakeRunner, backup_manifest
from pg_recovery.restore.backup import BackupDescriptor
from pg_recovery.restore.datadir import build_restore_options, restore_data_dir
from pg_recovery.utils.errors import RestoreFailed
from pg_recovery.utils.subprocess_utils import SubprocessRunner


def _backup(**kwargs):
    return BackupDescriptor.from_manifest(backup_manifest(**kwargs))


def test_options_without_endpoint_or_encryption():
    options = build_restore_options(_backup(), '/var/lib/postgresql/data/pgdata')
    assert '--endpoint-url' not in options
    assert '-e' not in options
    assert options == ['s3://bucket/path', 'srv1', 'B20240101', '/var/lib/postgresql/data/pgdata']


def test_options_with_endpoint_and_encryption():
    backup = _backup(endpoint='https://minio:9000', encryption='aws:kms')
    options = build_restore_options(backup, '/pgdata')
    assert options == [
        '--endpoint-url', 'https://minio:9000',
        '-e', 'aws:kms',
        's3://bucket/path', 'srv1', 'B20240101', '/pgdata',
    ]


def test_options_with_encryption_only():
    options = build_restore_options(_backup(encryption='AES256'), '/pgdata')
    assert options[:2] == ['-e', 'AES256']
    assert options[2:] == ['s3://bucket/path', 'srv1', 'B20240101', '/pgdata']


def test_restore_runs_barman_cloud_restore(pgdata):
    runner = FakeRunner()
    restore_data_dir(_backup(), pgdata, runner=runner)
    assert runner.commands == [
        ['barman-cloud-restore', 's3://bucket/path', 'srv1', 'B20240101', str(pgdata)]
    ]


def test_failure_keeps_captured_output(pgdata):
    runner = FakeRunner(on_run=lambda cmd: {
        'success': False,
        'error': 'Command failed with exit code 2',
        'returncode': 2,
        'stdout': 'fetching base backup',
        'stderr': 'ERROR: Unknown backup B20240101',
    })

    with pytest.raises(RestoreFailed) as excinfo:
        restore_data_dir(_backup(), pgdata, runner=runner)

    assert excinfo.value.returncode == 2
    assert excinfo.value.stdout == 'fetching base backup'
    assert excinfo.value.stderr == 'ERROR: Unknown backup B20240101'


def test_missing_tool_is_a_restore_failure(pgdata, monkeypatch):
    monkeypatch.setattr('pg_recovery.restore.datadir.BARMAN_CLOUD_RESTORE', 'barman-cloud-restore-does-not-exist')

    with pytest.raises(RestoreFailed, match="Command not found"):
        restore_data_dir(_backup(), pgdata, runner=SubprocessRunner())
