# ==============================================================================
# REPOSITÓRIO DE CONTAS DE MILHAS
# ==============================================================================
# mileage_accounts.json -> contas (saldo, custo por milha, limite de CPFs)
# account_cpfs.json     -> CPFs distintos já emitidos por conta
# movements.json        -> créditos e débitos manuais
#
# update_account_balance e update_account_cpf_count equivalem às
# funções armazenadas do banco original.
# ==============================================================================

from typing import Any, Dict, List, Optional

from agencia_milhas.helpers import only_digits
from agencia_milhas.repositories.base import TableRepository


class AccountRepository(TableRepository):
    """
    Contas de milhas.

    Formato:
    {
        "id": "...", "supplier_id": "...", "airline_company_id": "...",
        "account_number": "123456", "account_holder_name": "...",
        "balance": 150000, "cost_per_mile": 0.029,
        "cpf_limit": 25, "cpf_count": 3, "status": "active"
    }
    """

    FILE_NAME = 'mileage_accounts.json'

    def update_account_balance(self, account_id: str, miles_delta: float) -> Optional[Dict[str, Any]]:
        """
        Soma miles_delta ao saldo (negativo para débito).

        Returns:
            Conta atualizada, ou None se não existir
        """
        with self._file_lock:
            account = self.get(account_id)
            if account is None:
                return None
            new_balance = float(account.get('balance', 0) or 0) + float(miles_delta)
            return self.update_by_id(account_id, {'balance': new_balance})

    def update_account_cpf_count(self, account_id: str, cpf_count: int) -> Optional[Dict[str, Any]]:
        return self.update_by_id(account_id, {'cpf_count': cpf_count})


class AccountCpfRepository(TableRepository):
    """CPFs distintos usados em cada conta (a contagem é por conta)."""

    FILE_NAME = 'account_cpfs.json'

    def add(self, account_id: str, cpf: str) -> bool:
        """
        Registra o CPF na conta.

        Returns:
            True se o CPF era novo para a conta
        """
        digits = only_digits(cpf)
        with self._file_lock:
            if self.cpf_exists(account_id, digits):
                return False
            self.insert({'account_id': account_id, 'cpf': digits})
        return True

    def cpf_exists(self, account_id: str, cpf: str) -> bool:
        digits = only_digits(cpf)
        return any(
            r.get('account_id') == account_id and r.get('cpf') == digits
            for r in self.get_all()
        )

    def count_distinct(self, account_id: str) -> int:
        return len({r.get('cpf') for r in self.find_all_by('account_id', account_id)})


class MovementRepository(TableRepository):
    """Movimentações manuais de milhas (crédito/débito)."""

    FILE_NAME = 'movements.json'

    def list_by_account(self, account_id: str) -> List[Dict[str, Any]]:
        rows = self.find_all_by('account_id', account_id)
        return sorted(rows, key=lambda r: r.get('created_at', ''), reverse=True)
