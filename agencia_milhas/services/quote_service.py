# ==============================================================================
# SERVIÇO DE ORÇAMENTOS
# ==============================================================================
# Orçamentos para clientes, com juros de parcelamento da agência.
#
# STATUS: pending -> sent -> accepted | rejected | expired
# Converter em venda grava converted_to_sale_id e marca como accepted.
# ==============================================================================

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from agencia_milhas.helpers import format_date_iso, parse_br_date, parse_br_number, to_int
from agencia_milhas.models import AuditType, QuoteStatus, TripType
from agencia_milhas.repositories import InterestConfigRepository, QuoteRepository
from agencia_milhas.services.audit_service import AuditService
from agencia_milhas.services.calculator import calculate_installments
from agencia_milhas.services.sales_service import SalesService

logger = logging.getLogger(__name__)

QUOTE_STATUSES = frozenset(s.value for s in QuoteStatus)


class QuoteService:

    def __init__(
        self,
        quote_repo: QuoteRepository,
        interest_repo: InterestConfigRepository,
        sales_service: SalesService,
        audit_service: AuditService = None
    ):
        self.quote_repo = quote_repo
        self.interest_repo = interest_repo
        self.sales_service = sales_service
        self.audit_service = audit_service

    def _build(self, supplier_id: str, data: Dict[str, Any], current: Dict[str, Any] = None) -> Dict[str, Any]:
        """Mescla os dados recebidos com o orçamento atual e recalcula os juros."""
        merged = dict(current or {})
        merged.update({k: v for k, v in data.items() if v is not None})

        departure = parse_br_date(merged.get('departure_date'))
        installments = max(1, to_int(merged.get('installments'), 1))
        payment_type = merged.get('payment_type') or ('credit' if installments > 1 else 'debit')
        total = parse_br_number(merged.get('total_price'))

        config = self.interest_repo.get_active(supplier_id, payment_type)
        result = calculate_installments(total, installments, config)

        return {
            'client_name': str(merged.get('client_name') or '').strip(),
            'client_phone': str(merged.get('client_phone') or '').strip(),
            'route': str(merged.get('route') or '').strip().upper(),
            'departure_date': format_date_iso(departure) if departure else None,
            'trip_type': merged.get('trip_type') or TripType.ONE_WAY.value,
            'passengers': max(1, to_int(merged.get('passengers'), 1)),
            'miles_needed': parse_br_number(merged.get('miles_needed')),
            'boarding_fee': parse_br_number(merged.get('boarding_fee')),
            'total_price': round(total, 2),
            'payment_type': payment_type,
            'installments': result.installments,
            'installment_value': result.installment_value,
            'interest_rate': result.interest_rate,
            'final_price_with_interest': result.final_price,
            'notes': str(merged.get('notes') or '').strip(),
        }

    @staticmethod
    def _validate(values: Dict[str, Any]) -> Optional[str]:
        if not values['client_name']:
            return 'Nome do cliente é obrigatório'
        if values['total_price'] <= 0:
            return 'Valor total deve ser maior que zero'
        if values['trip_type'] not in (t.value for t in TripType):
            return 'Tipo de viagem inválido'
        return None

    # =========================================================================
    # CRUD
    # =========================================================================

    def list_quotes(self, supplier_id: str, status: str = None) -> List[Dict[str, Any]]:
        quotes = self.quote_repo.load(supplier_id)
        if status:
            quotes = [q for q in quotes if q.get('status') == status]
        return quotes

    def get_quote(self, supplier_id: str, quote_id: str) -> Optional[Dict[str, Any]]:
        quote = self.quote_repo.get(quote_id)
        if quote and quote.get('supplier_id') == supplier_id:
            return quote
        return None

    def create_quote(self, supplier_id: str, data: Dict[str, Any], user: str) -> Dict[str, Any]:
        values = self._build(supplier_id, data)
        error = self._validate(values)
        if error:
            return {'ok': False, 'error': error}

        quote = self.quote_repo.insert(dict(
            values, supplier_id=supplier_id, status=QuoteStatus.PENDING.value, created_by=user
        ))
        if self.audit_service:
            self.audit_service.log(AuditType.ORCAMENTO.value, user,
                                   f"Orçamento para {quote['client_name']} criado",
                                   quote['id'], {'final_price': quote['final_price_with_interest']}, supplier_id)
        return {'ok': True, 'quote': quote}

    def update_quote(self, supplier_id: str, quote_id: str, data: Dict[str, Any], user: str) -> Dict[str, Any]:
        current = self.get_quote(supplier_id, quote_id)
        if not current:
            return {'ok': False, 'error': 'Orçamento não encontrado'}
        if current.get('converted_to_sale_id'):
            return {'ok': False, 'error': 'Orçamento já convertido em venda'}
        values = self._build(supplier_id, data, current)
        error = self._validate(values)
        if error:
            return {'ok': False, 'error': error}
        return {'ok': True, 'quote': self.quote_repo.update_by_id(quote_id, values)}

    def set_status(self, supplier_id: str, quote_id: str, status: str, user: str) -> Dict[str, Any]:
        quote = self.get_quote(supplier_id, quote_id)
        if not quote:
            return {'ok': False, 'error': 'Orçamento não encontrado'}
        if status not in QUOTE_STATUSES:
            return {'ok': False, 'error': 'Status inválido'}

        updates = {'status': status}
        if status == QuoteStatus.SENT.value:
            updates['sent_at'] = datetime.now(timezone.utc).isoformat()
        logger.info("[ORÇAMENTO] %s -> %s por %s", quote_id, status, user)
        return {'ok': True, 'quote': self.quote_repo.update_by_id(quote_id, updates)}

    def delete_quote(self, supplier_id: str, quote_id: str, user: str) -> Dict[str, Any]:
        if not self.get_quote(supplier_id, quote_id):
            return {'ok': False, 'error': 'Orçamento não encontrado'}
        self.quote_repo.delete_by_id(quote_id)
        return {'ok': True}

    # =========================================================================
    # CONVERSÃO EM VENDA
    # =========================================================================

    def convert_to_sale(
        self,
        supplier_id: str,
        quote_id: str,
        sale_data: Dict[str, Any],
        user: str
    ) -> Dict[str, Any]:
        """
        Registra a venda a partir do orçamento.

        sale_data completa o que o orçamento não tem (canal, conta,
        trechos, CPF); nome, telefone, passageiros e valores vêm do orçamento
        quando não informados.
        """
        quote = self.get_quote(supplier_id, quote_id)
        if not quote:
            return {'ok': False, 'error': 'Orçamento não encontrado'}
        if quote.get('converted_to_sale_id'):
            return {'ok': False, 'error': 'Orçamento já convertido em venda'}

        form = {
            'customer_name': quote.get('client_name'),
            'customer_phone': quote.get('client_phone'),
            'passengers': quote.get('passengers'),
            'trip_type': quote.get('trip_type'),
            'price_total': quote.get('final_price_with_interest') or quote.get('total_price'),
            'boarding_fee': quote.get('boarding_fee'),
            'total_miles': quote.get('miles_needed') or None,
        }
        form.update({k: v for k, v in (sale_data or {}).items() if v not in (None, '')})

        result = self.sales_service.create_sale(form, supplier_id, user)
        if not result['ok']:
            return result

        self.quote_repo.update_by_id(quote_id, {
            'status': QuoteStatus.ACCEPTED.value,
            'converted_to_sale_id': result['sale_id'],
            'converted_at': datetime.now(timezone.utc).isoformat(),
        })
        return {'ok': True, 'sale_id': result['sale_id'], 'sale': result['sale']}
