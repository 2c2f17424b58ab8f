# ==============================================================================
# REPOSITÓRIO DE ORÇAMENTOS
# ==============================================================================

from typing import Any, Dict, List

from agencia_milhas.repositories.base import TableRepository


class QuoteRepository(TableRepository):
    """
    quotes.json: orçamentos enviados a clientes
    {client_name, client_phone, route, departure_date, trip_type, passengers,
     miles_needed, boarding_fee, total_price, installments, interest_rate,
     final_price_with_interest, status, sent_at, converted_to_sale_id}
    """

    FILE_NAME = 'quotes.json'

    def load(self, supplier_id: str) -> List[Dict[str, Any]]:
        rows = self.list_by_supplier(supplier_id)
        return sorted(rows, key=lambda r: r.get('created_at', ''), reverse=True)
