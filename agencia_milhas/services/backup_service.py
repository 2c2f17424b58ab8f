# ==============================================================================
# BACKUPS AUTOMÁTICOS
# ==============================================================================
# Um ZIP por dia com todos os arquivos JSON de dados, guardando só os
# últimos MAX_BACKUPS (rotação automática).
#
# FORMATO: <data_dir>/backups/backup_YYYY-MM-DD.zip
# ==============================================================================

import logging
import os
import zipfile
from datetime import date, datetime
from typing import Any, Dict, List, Tuple

from agencia_milhas import repositories

logger = logging.getLogger(__name__)


def _data_files() -> List[str]:
    """Nomes dos arquivos de todas as tabelas (FILE_NAME de cada repositório)."""
    names = []
    for name in repositories.__all__:
        file_name = getattr(getattr(repositories, name), 'FILE_NAME', '')
        if file_name and file_name not in names:
            names.append(file_name)
    return names


class BackupService:
    """
    Responsabilidades:
    - Criar o backup diário em ZIP
    - Apagar os backups mais antigos
    - Informar o estado dos backups existentes
    """

    DATA_FILES = _data_files()
    MAX_BACKUPS = 7
    BACKUP_DIR_NAME = 'backups'

    def __init__(self, base_path: str, today=None):
        self.base_path = base_path
        self.backup_root = os.path.join(base_path, self.BACKUP_DIR_NAME)
        self._today = today
        os.makedirs(self.backup_root, exist_ok=True)

    def _today_zip_path(self) -> str:
        today = self._today or date.today()
        return os.path.join(self.backup_root, f'backup_{today.isoformat()}.zip')

    def _backup_exists_today(self) -> bool:
        zip_path = self._today_zip_path()
        return os.path.exists(zip_path) and os.path.getsize(zip_path) > 0

    def _existing_backups(self) -> List[str]:
        """backup_YYYY-MM-DD.zip existentes, mais recente primeiro."""
        backups = []
        for item in os.listdir(self.backup_root):
            if not (item.startswith('backup_') and item.endswith('.zip')):
                continue
            if not os.path.isfile(os.path.join(self.backup_root, item)):
                continue
            try:
                datetime.strptime(item[7:-4], '%Y-%m-%d')
            except ValueError:
                continue
            backups.append(item)
        backups.sort(reverse=True)
        return backups

    def _zip_data_files(self, zip_path: str) -> Tuple[int, List[str]]:
        added = 0
        errors = []
        try:
            with zipfile.ZipFile(zip_path, 'w', zipfile.ZIP_DEFLATED) as zf:
                for filename in self.DATA_FILES:
                    src = os.path.join(self.base_path, filename)
                    # Arquivo ausente não é erro (sistema novo)
                    if not os.path.exists(src):
                        continue
                    try:
                        zf.write(src, filename)
                        added += 1
                    except OSError as e:
                        errors.append(f"{filename}: {e}")
        except (OSError, zipfile.BadZipFile) as e:
            errors.append(f"Erro ao criar ZIP: {e}")
            if os.path.exists(zip_path):
                os.remove(zip_path)
        return added, errors

    def create_backup(self, force: bool = False) -> Dict[str, Any]:
        """
        Cria o ZIP do dia.

        Args:
            force: cria mesmo que já exista backup de hoje

        Returns:
            {success, message, files_added, errors, backup_path}
        """
        zip_path = self._today_zip_path()
        result = {'success': False, 'message': '', 'files_added': 0, 'errors': [], 'backup_path': None}

        if not force and self._backup_exists_today():
            result.update(success=True, message='Backup do dia já existe', backup_path=zip_path)
            logger.info("[BACKUP] Backup já existe hoje: %s", os.path.basename(zip_path))
            return result

        added, errors = self._zip_data_files(zip_path)
        result.update(success=added > 0, files_added=added, errors=errors)
        if added > 0:
            size_kb = round(os.path.getsize(zip_path) / 1024, 2)
            result['backup_path'] = zip_path
            result['message'] = f'Backup criado: {added} arquivos ({size_kb} KB)'
            logger.info("[BACKUP] %s criado (%d arquivos, %s KB)", os.path.basename(zip_path), added, size_kb)
        else:
            result['message'] = 'Nenhum arquivo de dados para copiar'
            if os.path.exists(zip_path):
                os.remove(zip_path)
        return result

    def rotate_backups(self) -> Dict[str, int]:
        backups = self._existing_backups()
        deleted = 0
        for backup_name in backups[self.MAX_BACKUPS:]:
            try:
                os.remove(os.path.join(self.backup_root, backup_name))
                deleted += 1
                logger.info("[BACKUP] Backup antigo removido: %s", backup_name)
            except OSError as e:
                logger.error("[BACKUP] Não foi possível remover %s: %s", backup_name, e)
        return {'deleted_count': deleted, 'remaining_count': len(self._existing_backups())}

    def run_daily_backup(self) -> Dict[str, Any]:
        return {'backup': self.create_backup(), 'rotation': self.rotate_backups()}

    def get_backup_status(self) -> Dict[str, Any]:
        info = []
        for name in self._existing_backups():
            path = os.path.join(self.backup_root, name)
            with zipfile.ZipFile(path, 'r') as zf:
                file_count = len(zf.namelist())
            info.append({
                'filename': name,
                'date': name[7:-4],
                'files': file_count,
                'size_kb': round(os.path.getsize(path) / 1024, 2),
            })
        return {
            'total_backups': len(info),
            'max_backups': self.MAX_BACKUPS,
            'backups': info,
            'today_exists': self._backup_exists_today(),
        }


def run_startup_backup(base_path: str) -> None:
    """
    Backup ao iniciar a aplicação.
    Qualquer falha é registrada no log e a aplicação segue normalmente.
    """
    try:
        result = BackupService(base_path).run_daily_backup()
    except (OSError, zipfile.BadZipFile) as e:
        logger.error("[BACKUP] Não foi possível executar o backup: %s", e)
        return
    if result['backup']['errors']:
        logger.warning("[BACKUP] Erros: %s", result['backup']['errors'])
