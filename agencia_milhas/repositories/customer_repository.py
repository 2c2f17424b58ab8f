# ==============================================================================
# REPOSITÓRIO DE CLIENTES
# ==============================================================================

from typing import Any, Dict, List, Optional

from agencia_milhas.helpers import only_digits
from agencia_milhas.repositories.base import TableRepository


class CustomerRepository(TableRepository):
    """
    customers.json: clientes da agência
    {supplier_id, name, cpf_encrypted, rg, birth_date, phone, email,
     total_purchases, total_spent, last_purchase_at}
    """

    FILE_NAME = 'customers.json'

    def load(self, supplier_id: str) -> List[Dict[str, Any]]:
        rows = self.list_by_supplier(supplier_id)
        return sorted(rows, key=lambda r: (r.get('name') or '').lower())

    def find_by_cpf(self, supplier_id: str, cpf: str) -> Optional[Dict[str, Any]]:
        digits = only_digits(cpf)
        if not digits:
            return None
        for row in self.list_by_supplier(supplier_id):
            if row.get('cpf_encrypted') == digits:
                return row
        return None

    def find_by_name(self, supplier_id: str, name: str) -> Optional[Dict[str, Any]]:
        name = (name or '').strip().lower()
        if not name:
            return None
        for row in self.list_by_supplier(supplier_id):
            if (row.get('name') or '').strip().lower() == name:
                return row
        return None
