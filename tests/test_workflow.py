import pathlib

import pytest

from conftest import FakeApiClient, FakeConnection, FakeInstance, FakeRunner, backup_manifest
from pg_recovery.restore.waiter import RecoveryWaitPolicy
from pg_recovery.restore.workflow import Restore
from pg_recovery.utils.config import RestoreRequest
from pg_recovery.utils.errors import BackupNotFound, ConfigurationError, RestoreFailed


@pytest.fixture
def request_for(tmp_path):
    def build(**kwargs):
        password_file = tmp_path / 'superuser-password'
        password_file.write_text('postgres-secret')
        fields = dict(
            pgdata=str(tmp_path / 'pgdata'),
            namespace='default',
            backup_name='backup-1',
            cluster_name='cluster-example',
            pod_name='cluster-example-1',
            password_file=str(password_file),
        )
        fields.update(kwargs)
        return RestoreRequest(**fields)
    return build


def _api_client():
    return FakeApiClient(
        backups={('default', 'backup-1'): backup_manifest(
            destination='s3://bucket/path', server='srv1', backup_id='B20240101', cluster='srv1'
        )},
        clusters={('default', 'cluster-example'): {
            'spec': {'postgresql': {'parameters': {'work_mem': '8MB'}}}
        }},
    )


def _restoring_runner(version):
    """Simulates barman-cloud-restore by creating PGDATA with a PG_VERSION file."""
    def on_run(cmd):
        target = cmd[-1]
        pathlib.Path(target).mkdir(parents=True, exist_ok=True)
        (pathlib.Path(target) / 'PG_VERSION').write_text(f"{version}\n")
        (pathlib.Path(target) / 'postgresql.auto.conf').write_text("primary_conninfo = 'host=old'\n")
    return FakeRunner(on_run=on_run)


def test_restore_v14(request_for):
    request = request_for()
    runner = _restoring_runner(14)
    connection = FakeConnection(recovery_states=[True, False])
    instance = FakeInstance(connection)

    Restore(request, _api_client(), runner=runner, instance=instance,
            policy=RecoveryWaitPolicy(interval=0), sleep=lambda _: None).run()

    pgdata = pathlib.Path(request.pgdata)
    assert runner.commands == [
        ['barman-cloud-restore', 's3://bucket/path', 'srv1', 'B20240101', str(pgdata)]
    ]
    assert (pgdata / 'recovery.signal').exists()
    assert not (pgdata / 'recovery.conf').exists()

    custom = (pgdata / 'custom.conf').read_text()
    assert "work_mem = '8MB'\n" in custom
    assert "ssl = 'off'\n" in custom
    assert "archive_command = 'cd .'\n" in custom
    assert "restore_command = 'barman-cloud-wal-restore s3://bucket/path srv1 %f %p'\n" in custom
    # the disabling lines come after the seeded settings so they win
    assert custom.index("archive_command = 'cd .'") > custom.index("archive_command = '/controller")

    assert (pgdata / 'pg_hba.conf').read_text() == "local all all peer map=local\n"
    assert (pgdata / 'pg_ident.conf').exists()
    assert connection.statements('ALTER USER') == [("ALTER USER postgres PASSWORD %s", ('postgres-secret',))]
    assert instance.events == ['start', 'connect', 'stop']

    # emptied for recovery, then rewritten once the instance has promoted
    auto_conf = (pgdata / 'postgresql.auto.conf').read_text()
    assert "host=old" not in auto_conf
    assert "application_name=cluster-example-1" in auto_conf


def test_restore_v11(request_for):
    request = request_for()
    connection = FakeConnection(recovery_states=[False])

    Restore(request, _api_client(), runner=_restoring_runner(11),
            instance=FakeInstance(connection), sleep=lambda _: None).run()

    pgdata = pathlib.Path(request.pgdata)
    assert not (pgdata / 'recovery.signal').exists()
    recovery_conf = (pgdata / 'recovery.conf').read_text()
    assert "recovery_target_action = promote\n" in recovery_conf
    assert "restore_command = 'barman-cloud-wal-restore s3://bucket/path srv1 %f %p'\n" in recovery_conf
    assert "restore_command" not in (pgdata / 'custom.conf').read_text()
    assert len(connection.statements('ALTER USER')) == 1
    # seeded header, no post-promotion rewrite
    assert (pgdata / 'postgresql.auto.conf').read_text().startswith("# Do not edit this file manually!")


def test_temporary_request_is_refused(request_for):
    client = _api_client()
    with pytest.raises(ConfigurationError, match="temporary"):
        Restore(request_for(temporary=True), client, runner=FakeRunner(), instance=FakeInstance()).run()
    assert client.calls == []


def test_missing_backup_stops_workflow(request_for):
    runner = FakeRunner()
    instance = FakeInstance()
    with pytest.raises(BackupNotFound):
        Restore(request_for(backup_name='missing'), _api_client(), runner=runner, instance=instance).run()
    assert runner.commands == []
    assert instance.events == []


def test_restore_failure_stops_workflow(request_for):
    runner = FakeRunner(on_run=lambda cmd: {'success': False, 'error': 'exit code 1',
                                            'returncode': 1, 'stderr': 'access denied'})
    client = _api_client()
    instance = FakeInstance()

    with pytest.raises(RestoreFailed) as excinfo:
        Restore(request_for(), client, runner=runner, instance=instance).run()

    assert excinfo.value.stderr == 'access denied'
    assert [call[0] for call in client.calls] == ['backup']
    assert instance.events == []
