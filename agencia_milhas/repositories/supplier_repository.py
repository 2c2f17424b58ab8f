# ==============================================================================
# REPOSITÓRIO DE FORNECEDORES (agências e fornecedores de milhas)
# ==============================================================================

from agencia_milhas.repositories.base import TableRepository


class SupplierRepository(TableRepository):
    """
    suppliers.json: [{id, name, phone, pix_key, payment_type, notes, owner_email}]

    Cada usuário pertence a um fornecedor (supplier_id); todos os demais
    dados são filtrados por ele.
    """

    FILE_NAME = 'suppliers.json'

    def find_by_name(self, name: str):
        target = (name or '').strip().lower()
        for record in self.get_all():
            if (record.get('name') or '').strip().lower() == target:
                return record
        return None
