# ==============================================================================
# REPOSITÓRIO BASE - Acesso comum a arquivos JSON
# ==============================================================================

import json
import os
import threading
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class BaseRepository(ABC):
    """
    Classe base abstrata para todos os repositórios.
    Leitura/escrita de um arquivo JSON com lock de processo.

    Ao migrar para um banco relacional:
    - Esta classe vira uma conexão
    - _read_raw/_write_raw viram queries
    - O lock vira transação
    """

    # Lock global de escrita (todas as tabelas)
    _file_lock = threading.RLock()

    # Nome do arquivo dentro da pasta de dados (definido nas subclasses)
    FILE_NAME = ''

    def __init__(self, base_path: str):
        """
        Args:
            base_path: Pasta onde ficam os arquivos JSON
        """
        os.makedirs(base_path, exist_ok=True)
        self.file_path = os.path.join(base_path, self.FILE_NAME)
        self._ensure_file_exists()

    def _ensure_file_exists(self) -> None:
        if not os.path.exists(self.file_path):
            self._write_raw(self._empty_data())

    @abstractmethod
    def _empty_data(self) -> Any:
        """Estrutura vazia (dict ou list) do repositório."""

    def _read_raw(self) -> Any:
        """
        Lê os dados crus do arquivo JSON.

        Returns:
            Dados do JSON, ou a estrutura vazia se o arquivo estiver corrompido
        """
        with self._file_lock:
            try:
                with open(self.file_path, 'r', encoding='utf-8') as f:
                    return json.load(f)
            except (json.JSONDecodeError, FileNotFoundError):
                return self._empty_data()

    def _write_raw(self, data: Any) -> None:
        """Grava em arquivo temporário e substitui o original (atômico)."""
        with self._file_lock:
            temp_path = self.file_path + '.tmp'
            try:
                with open(temp_path, 'w', encoding='utf-8') as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)
                os.replace(temp_path, self.file_path)
            except Exception:
                if os.path.exists(temp_path):
                    os.remove(temp_path)
                raise


class DictRepository(BaseRepository):
    """
    Repositório de dados guardados como dicionário (a chave é o ID).

    Exemplo: users.json -> {"ana@x.com": {...}, ...}
    """

    def _empty_data(self) -> Dict:
        return {}

    def get_all(self) -> Dict[str, Any]:
        data = self._read_raw()
        return data if isinstance(data, dict) else {}

    def get_by_id(self, record_id: Any) -> Optional[Dict[str, Any]]:
        return self.get_all().get(str(record_id))

    def update(self, record_id: Any, record_data: Dict[str, Any]) -> None:
        with self._file_lock:
            data = self.get_all()
            data[str(record_id)] = record_data
            self._write_raw(data)

    def delete(self, record_id: Any) -> Optional[Dict[str, Any]]:
        with self._file_lock:
            data = self.get_all()
            removed = data.pop(str(record_id), None)
            if removed is not None:
                self._write_raw(data)
            return removed


class ListRepository(BaseRepository):
    """
    Repositório de dados guardados como lista.

    Exemplo: audit.json -> [{...}, {...}]
    """

    def _empty_data(self) -> List:
        return []

    def get_all(self) -> List[Dict[str, Any]]:
        data = self._read_raw()
        return data if isinstance(data, list) else []

    def save_all(self, data: List[Dict[str, Any]]) -> None:
        self._write_raw(data)

    def find_by(self, field: str, value: Any) -> Optional[Dict[str, Any]]:
        """Primeiro registro com field == value, ou None."""
        for record in self.get_all():
            if record.get(field) == value:
                return record
        return None

    def find_all_by(self, field: str, value: Any) -> List[Dict[str, Any]]:
        return [r for r in self.get_all() if r.get(field) == value]


class TableRepository(ListRepository):
    """
    Lista de registros com 'id' (uuid) e carimbos created_at/updated_at.
    Equivale a uma tabela do banco; quase todos os repositórios herdam dela.
    """

    def insert(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """
        Insere um registro novo e devolve a cópia gravada (com id e datas).
        """
        now = utc_now_iso()
        row = dict(record)
        row.setdefault('id', uuid.uuid4().hex)
        row.setdefault('created_at', now)
        row['updated_at'] = now
        with self._file_lock:
            data = self.get_all()
            data.append(row)
            self._write_raw(data)
        return row

    def get(self, record_id: str) -> Optional[Dict[str, Any]]:
        return self.find_by('id', record_id)

    def update_by_id(self, record_id: str, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Atualiza campos de um registro.

        Returns:
            Registro atualizado, ou None se não existir
        """
        with self._file_lock:
            data = self.get_all()
            for record in data:
                if record.get('id') == record_id:
                    record.update(updates)
                    record['id'] = record_id
                    record['updated_at'] = utc_now_iso()
                    self._write_raw(data)
                    return record
        return None

    def delete_by_id(self, record_id: str) -> Optional[Dict[str, Any]]:
        with self._file_lock:
            data = self.get_all()
            for index, record in enumerate(data):
                if record.get('id') == record_id:
                    removed = data.pop(index)
                    self._write_raw(data)
                    return removed
        return None

    def delete_where(self, predicate: Callable[[Dict[str, Any]], bool]) -> int:
        """Remove todos os registros que satisfazem o predicado."""
        with self._file_lock:
            data = self.get_all()
            kept = [r for r in data if not predicate(r)]
            removed = len(data) - len(kept)
            if removed:
                self._write_raw(kept)
            return removed

    def list_by_supplier(self, supplier_id: str) -> List[Dict[str, Any]]:
        """Registros de uma agência (equivalente ao filtro por RLS)."""
        return self.find_all_by('supplier_id', supplier_id)
