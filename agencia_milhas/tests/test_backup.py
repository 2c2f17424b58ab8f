import os
import zipfile
from datetime import date, timedelta

from agencia_milhas.services.backup_service import BackupService, run_startup_backup

DAY = date(2025, 3, 10)


def _write_data(base_path):
    with open(os.path.join(base_path, 'sales.json'), 'w', encoding='utf-8') as f:
        f.write('{}')
    with open(os.path.join(base_path, 'users.json'), 'w', encoding='utf-8') as f:
        f.write('{}')


def test_create_backup(tmp_path):
    _write_data(tmp_path)
    # arquivo fora das tabelas não entra no ZIP
    (tmp_path / 'anotacoes.txt').write_text('x')

    result = BackupService(str(tmp_path), today=DAY).create_backup()
    assert result['success']
    assert result['files_added'] == 2
    assert result['backup_path'].endswith('backup_2025-03-10.zip')

    with zipfile.ZipFile(result['backup_path']) as zf:
        assert sorted(zf.namelist()) == ['sales.json', 'users.json']


def test_backup_once_per_day(tmp_path):
    _write_data(tmp_path)
    service = BackupService(str(tmp_path), today=DAY)
    service.create_backup()

    again = service.create_backup()
    assert again['success']
    assert again['message'] == 'Backup do dia já existe'
    assert again['files_added'] == 0

    assert service.create_backup(force=True)['files_added'] == 2


def test_backup_without_data_files(tmp_path):
    service = BackupService(str(tmp_path), today=DAY)
    result = service.create_backup()
    assert not result['success']
    assert result['message'] == 'Nenhum arquivo de dados para copiar'
    assert not os.path.exists(os.path.join(service.backup_root, 'backup_2025-03-10.zip'))


def test_rotation_keeps_most_recent(tmp_path):
    _write_data(tmp_path)
    for offset in range(9):
        BackupService(str(tmp_path), today=DAY + timedelta(days=offset)).create_backup()

    service = BackupService(str(tmp_path), today=DAY + timedelta(days=8))
    rotation = service.rotate_backups()
    assert rotation == {'deleted_count': 2, 'remaining_count': 7}

    status = service.get_backup_status()
    assert status['total_backups'] == 7
    assert status['max_backups'] == 7
    assert status['today_exists']
    assert status['backups'][0]['date'] == '2025-03-18'
    assert status['backups'][-1]['date'] == '2025-03-12'
    assert status['backups'][0]['files'] == 2


def test_status_ignores_foreign_files(tmp_path):
    service = BackupService(str(tmp_path), today=DAY)
    open(os.path.join(service.backup_root, 'backup_ontem.zip'), 'w').close()
    open(os.path.join(service.backup_root, 'notas.txt'), 'w').close()
    assert service.get_backup_status()['total_backups'] == 0


def test_startup_backup(tmp_path):
    _write_data(tmp_path)
    run_startup_backup(str(tmp_path))
    assert BackupService(str(tmp_path)).get_backup_status()['today_exists']
