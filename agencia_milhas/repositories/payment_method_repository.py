# ==============================================================================
# REPOSITÓRIOS DE FORMAS DE PAGAMENTO E JUROS
# ==============================================================================
# payment_methods.json         -> formas exibidas em orçamentos
# payment_interest_config.json -> juros de débito/crédito por agência
# ==============================================================================

from typing import Any, Dict, List, Optional

from agencia_milhas.repositories.base import TableRepository


class PaymentMethodRepository(TableRepository):

    FILE_NAME = 'payment_methods.json'

    def load(self, supplier_id: str, only_active: bool = False) -> List[Dict[str, Any]]:
        """Formas de pagamento ordenadas por display_order."""
        rows = self.list_by_supplier(supplier_id)
        if only_active:
            rows = [r for r in rows if r.get('is_active')]
        return sorted(rows, key=lambda r: (r.get('display_order', 0), r.get('method_name', '')))


class InterestConfigRepository(TableRepository):
    """
    Configuração de juros:
    {supplier_id, payment_type: debit|credit, interest_type: total|per_installment,
     interest_rate, per_installment_rates: {"2": 3.5, ...},
     max_installments, is_active}
    """

    FILE_NAME = 'payment_interest_config.json'

    def get_active(self, supplier_id: str, payment_type: str) -> Optional[Dict[str, Any]]:
        for row in self.list_by_supplier(supplier_id):
            if row.get('payment_type') == payment_type and row.get('is_active'):
                return row
        return None
