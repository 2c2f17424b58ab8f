# ==============================================================================
# REPOSITÓRIO DE USUÁRIOS
# ==============================================================================
# Encapsula o acesso a users.json
# Usuários guardados como dicionário: {email: {password, role, supplier_id}}
# ==============================================================================

from typing import Any, Dict, List, Optional

from agencia_milhas.repositories.base import DictRepository, utc_now_iso


class UserRepository(DictRepository):
    """
    Repositório de usuários.

    Formato de users.json:
    {
        "ana@agencia.com": {
            "password": "hash",
            "role": "supplier_owner",
            "supplier_id": "abc123",
            "full_name": "Ana",
            "created_at": "..."
        }
    }
    """

    FILE_NAME = 'users.json'

    @staticmethod
    def _key(email: str) -> str:
        return (email or '').strip().lower()

    def get_user(self, email: str) -> Optional[Dict[str, Any]]:
        user = self.get_by_id(self._key(email))
        if user is not None:
            user = dict(user, email=self._key(email))
        return user

    def user_exists(self, email: str) -> bool:
        return self._key(email) in self.get_all()

    def create_user(
        self,
        email: str,
        password_hash: str,
        role: str,
        supplier_id: Optional[str] = None,
        full_name: str = ''
    ) -> bool:
        """
        Cria um usuário.

        Returns:
            True se criou, False se o e-mail já existia
        """
        key = self._key(email)
        with self._file_lock:
            users = self.get_all()
            if key in users:
                return False
            users[key] = {
                'password': password_hash,
                'role': role,
                'supplier_id': supplier_id,
                'full_name': full_name,
                'created_at': utc_now_iso(),
            }
            self._write_raw(users)
        return True

    def update_user(self, email: str, updates: Dict[str, Any]) -> bool:
        key = self._key(email)
        with self._file_lock:
            users = self.get_all()
            if key not in users:
                return False
            users[key].update(updates)
            self._write_raw(users)
        return True

    def update_password(self, email: str, password_hash: str) -> bool:
        return self.update_user(email, {'password': password_hash})

    def list_by_supplier(self, supplier_id: str) -> List[Dict[str, Any]]:
        """Usuários de uma agência, sem o hash da senha."""
        result = []
        for email, data in self.get_all().items():
            if data.get('supplier_id') == supplier_id:
                public = {k: v for k, v in data.items() if k != 'password'}
                public['email'] = email
                result.append(public)
        return sorted(result, key=lambda u: u['email'])
