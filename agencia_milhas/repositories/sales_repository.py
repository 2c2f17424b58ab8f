# ==============================================================================
# REPOSITÓRIO DE VENDAS
# ==============================================================================
# sales.json                -> vendas
# sale_segments.json        -> trechos de voo de cada venda
# payment_transactions.json -> pagamentos recebidos por venda
# ==============================================================================

from typing import Any, Dict, List

from agencia_milhas.repositories.base import TableRepository


class SalesRepository(TableRepository):
    """
    Repositório de vendas.

    Formato de uma venda:
    {
        "id": "...", "supplier_id": "...", "channel": "internal" | "balcao",
        "sale_source": "internal_account" | "mileage_counter" | "bulk_import",
        "client_name": "...", "client_cpf_encrypted": "...",
        "mileage_account_id": "...", "airline_company_id": "...",
        "miles_used": 30000, "cost_per_thousand": 29.0,
        "price_total": 2500.0, "boarding_fee": 120.0, "total_cost": 990.0,
        "profit": 1510.0, "profit_margin": 60.4, "route_text": "GRU-GIG",
        "payment_status": "pending", "paid_amount": 0, "status": "completed",
        "sale_date": "2025-03-10", ...
    }
    """

    FILE_NAME = 'sales.json'

    def load(self, supplier_id: str) -> List[Dict[str, Any]]:
        """Vendas da agência, mais recentes primeiro."""
        sales = self.list_by_supplier(supplier_id)
        return sorted(
            sales,
            key=lambda s: (s.get('sale_date') or '', s.get('created_at') or ''),
            reverse=True
        )

    def list_by_account(self, account_id: str) -> List[Dict[str, Any]]:
        return self.find_all_by('mileage_account_id', account_id)

    def route_contains(self, supplier_id: str, text: str) -> bool:
        """Busca parcial (sem diferenciar maiúsculas) em route_text e localizador."""
        needle = (text or '').strip().lower()
        if not needle:
            return False
        for sale in self.list_by_supplier(supplier_id):
            haystack = f"{sale.get('route_text') or ''} {sale.get('locator') or ''}".lower()
            if needle in haystack:
                return True
        return False


class SaleSegmentRepository(TableRepository):

    FILE_NAME = 'sale_segments.json'

    def list_by_sale(self, sale_id: str) -> List[Dict[str, Any]]:
        rows = self.find_all_by('sale_id', sale_id)
        return sorted(rows, key=lambda r: r.get('position', 0))

    def delete_by_sale(self, sale_id: str) -> int:
        return self.delete_where(lambda r: r.get('sale_id') == sale_id)


class PaymentTransactionRepository(TableRepository):

    FILE_NAME = 'payment_transactions.json'

    def list_by_sale(self, sale_id: str) -> List[Dict[str, Any]]:
        rows = self.find_all_by('sale_id', sale_id)
        return sorted(rows, key=lambda r: r.get('payment_date') or r.get('created_at', ''))
