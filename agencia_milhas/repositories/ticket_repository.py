# ==============================================================================
# REPOSITÓRIO DE BILHETES
# ==============================================================================

from typing import Any, Dict, List

from agencia_milhas.repositories.base import TableRepository


class TicketRepository(TableRepository):
    """
    tickets.json: bilhetes emitidos a partir de uma venda
    {sale_id, ticket_code, pnr, ticket_number, passenger_name,
     passenger_cpf_encrypted, route, departure_date, return_date,
     airline, status, verification_status}
    """

    FILE_NAME = 'tickets.json'

    def list_by_sale(self, sale_id: str) -> List[Dict[str, Any]]:
        return self.find_all_by('sale_id', sale_id)

    def next_ticket_code(self, supplier_id: str) -> str:
        """Código sequencial legível: BIL0001, BIL0002..."""
        count = len(self.list_by_supplier(supplier_id))
        return f"BIL{count + 1:04d}"
