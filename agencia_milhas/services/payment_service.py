# ==============================================================================
# SERVIÇO DE PAGAMENTOS DE VENDAS
# ==============================================================================
# Registra recebimentos (parciais ou totais) e atualiza o status da venda:
#   pago >= total -> paid
#   pago > 0      -> partial
#   senão         -> pending
# ==============================================================================

import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, List

from agencia_milhas.helpers import format_date_iso, parse_br_date, parse_br_number, to_float
from agencia_milhas.models import PaymentStatus
from agencia_milhas.repositories import PaymentTransactionRepository, SalesRepository
from agencia_milhas.services.audit_service import AuditService

logger = logging.getLogger(__name__)


def payment_status_for(paid_amount: float, price_total: float) -> str:
    if price_total > 0 and paid_amount >= price_total:
        return PaymentStatus.PAID.value
    if paid_amount > 0:
        return PaymentStatus.PARTIAL.value
    return PaymentStatus.PENDING.value


class PaymentService:

    def __init__(
        self,
        sales_repo: SalesRepository,
        payment_repo: PaymentTransactionRepository,
        audit_service: AuditService = None
    ):
        self.sales_repo = sales_repo
        self.payment_repo = payment_repo
        self.audit_service = audit_service

    def register_payment(
        self,
        supplier_id: str,
        sale_id: str,
        amount: Any,
        method: str,
        payment_date: str = None,
        notes: str = '',
        user: str = None
    ) -> Dict[str, Any]:
        """
        Registra um pagamento recebido para a venda.

        Args:
            amount: Valor recebido (aceita formato brasileiro, ex: "1.250,00")
            method: Forma de pagamento (pix, credit_card, ...)
            payment_date: Data do pagamento (padrão: hoje)

        Returns:
            {'ok': True, 'payment', 'paid_amount', 'payment_status'} ou {'ok': False, 'error'}
        """
        sale = self.sales_repo.get(sale_id)
        if not sale or sale.get('supplier_id') != supplier_id:
            return {'ok': False, 'error': 'Venda não encontrada'}

        value = parse_br_number(amount)
        if value <= 0:
            return {'ok': False, 'error': 'O valor do pagamento deve ser maior que zero'}
        if not method:
            return {'ok': False, 'error': 'Forma de pagamento é obrigatória'}

        paid_on = parse_br_date(payment_date) if payment_date else date.today()
        if not paid_on:
            return {'ok': False, 'error': 'Data do pagamento inválida'}

        payment = self.payment_repo.insert({
            'supplier_id': supplier_id,
            'sale_id': sale_id,
            'amount': round(value, 2),
            'payment_method': method,
            'payment_date': format_date_iso(paid_on),
            'notes': (notes or '').strip(),
            'created_by': user,
        })

        # Soma ao valor já gravado: vendas criadas como pagas não têm transação
        paid_amount = round(to_float(sale.get('paid_amount')) + value, 2)
        status = payment_status_for(paid_amount, float(sale.get('price_total') or 0))
        updates = {'paid_amount': paid_amount, 'payment_status': status}
        if status == PaymentStatus.PAID.value:
            updates['paid_at'] = sale.get('paid_at') or datetime.now(timezone.utc).isoformat()
        self.sales_repo.update_by_id(sale_id, updates)

        if self.audit_service:
            self.audit_service.log_payment(user, sale, value, method, status)
        return {'ok': True, 'payment': payment, 'paid_amount': paid_amount, 'payment_status': status}

    def list_payments(self, supplier_id: str, sale_id: str) -> List[Dict[str, Any]]:
        sale = self.sales_repo.get(sale_id)
        if not sale or sale.get('supplier_id') != supplier_id:
            return []
        return self.payment_repo.list_by_sale(sale_id)

    def delete_payment(self, supplier_id: str, payment_id: str, user: str) -> Dict[str, Any]:
        """Remove o pagamento e recalcula o status da venda."""
        payment = self.payment_repo.get(payment_id)
        if not payment or payment.get('supplier_id') != supplier_id:
            return {'ok': False, 'error': 'Pagamento não encontrado'}

        self.payment_repo.delete_by_id(payment_id)
        sale = self.sales_repo.get(payment['sale_id'])
        if sale:
            paid_amount = round(max(0.0, to_float(sale.get('paid_amount')) - to_float(payment.get('amount'))), 2)
            status = payment_status_for(paid_amount, float(sale.get('price_total') or 0))
            self.sales_repo.update_by_id(sale['id'], {
                'paid_amount': paid_amount,
                'payment_status': status,
                'paid_at': sale.get('paid_at') if status == PaymentStatus.PAID.value else None,
            })
        logger.info("[PAGAMENTO] %s removido por %s", payment_id, user)
        return {'ok': True}
