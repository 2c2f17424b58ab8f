# ==============================================================================
# SERVIÇO DE VENDAS
# ==============================================================================
# Registra vendas nos três canais e mantém saldo e CPFs consistentes.
#
# CANAIS:
#   internal -> milhas de conta própria (exige programa e conta)
#               debita o saldo e registra os CPFs dos passageiros
#   counter  -> balcão, milhas compradas de terceiros (exige vendedor,
#               contato, custo do milheiro e programa); gravado como 'balcao'
#   legacy   -> vendas históricas/importadas; gravado como 'internal'
#               com sale_source = 'bulk_import'
# ==============================================================================

import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Union

from agencia_milhas.helpers import only_digits, parse_br_date, format_date_iso, to_float
from agencia_milhas.models import (
    SEGMENT_DIRECTIONS,
    AccountStatus,
    PaymentStatus,
    SaleChannel,
    SaleForm,
    SaleSource,
    SaleStatus,
)
from agencia_milhas.performance_logger import profile_function
from agencia_milhas.repositories import (
    AccountRepository,
    PaymentTransactionRepository,
    SaleSegmentRepository,
    SalesRepository,
)
from agencia_milhas.services.account_service import AccountService
from agencia_milhas.services.audit_service import AuditService
from agencia_milhas.services.calculator import compute_sale_financials
from agencia_milhas.services.cpf_service import CpfService
from agencia_milhas.services.customer_service import CustomerService
from agencia_milhas.services.payment_service import payment_status_for

logger = logging.getLogger(__name__)

# Canal do formulário -> (canal gravado, origem da venda)
CHANNEL_STORAGE = {
    SaleChannel.INTERNAL.value: ('internal', SaleSource.INTERNAL_ACCOUNT.value),
    SaleChannel.COUNTER.value: ('balcao', SaleSource.MILEAGE_COUNTER.value),
    SaleChannel.LEGACY.value: ('internal', SaleSource.BULK_IMPORT.value),
}

# Campos que podem ser alterados depois da venda registrada
EDITABLE_FIELDS = (
    'client_name', 'client_contact', 'price_total', 'boarding_fee',
    'payment_method', 'notes', 'sale_date', 'status', 'locator',
)

# Status de pagamento definidos à mão; os demais vêm do valor pago
MANUAL_PAYMENT_STATUSES = (PaymentStatus.OVERDUE.value, PaymentStatus.REFUNDED.value)


def _fail(error: str) -> Dict[str, Any]:
    return {'ok': False, 'sale_id': '', 'error': error}


class SalesService:
    """
    Responsabilidades:
    - Validar e registrar vendas (internal / counter / legacy)
    - Debitar milhas e registrar CPFs nas vendas de conta própria
    - Gravar os trechos de voo
    - Somar a venda no cadastro do cliente
    - Listar, editar e excluir vendas (devolvendo milhas)
    """

    def __init__(
        self,
        sales_repo: SalesRepository,
        segment_repo: SaleSegmentRepository,
        payment_repo: PaymentTransactionRepository,
        account_repo: AccountRepository,
        account_service: AccountService,
        cpf_service: CpfService,
        audit_service: AuditService = None,
        customer_service: CustomerService = None
    ):
        self.sales_repo = sales_repo
        self.segment_repo = segment_repo
        self.payment_repo = payment_repo
        self.account_repo = account_repo
        self.account_service = account_service
        self.cpf_service = cpf_service
        self.audit_service = audit_service
        self.customer_service = customer_service

    # =========================================================================
    # CRIAÇÃO
    # =========================================================================

    def _passenger_cpfs(self, form: SaleForm) -> List[Dict[str, str]]:
        """Lista [{name, cpf}] com CPFs só em dígitos; usa o cliente se vazia."""
        passengers = []
        for item in form.passenger_cpfs:
            digits = only_digits(item.get('cpf'))
            if digits:
                passengers.append({'name': str(item.get('name') or '').strip(), 'cpf': digits})
        if not passengers and only_digits(form.customer_cpf):
            passengers.append({'name': form.customer_name, 'cpf': only_digits(form.customer_cpf)})
        return passengers

    def _validate_channel(self, form: SaleForm, supplier_id: str) -> Union[str, Dict[str, Any]]:
        """
        Verifica as exigências do canal.

        Returns:
            Mensagem de erro (str) ou contexto do canal (dict)
        """
        if form.channel == SaleChannel.INTERNAL.value:
            if not form.program_id or not form.account_id:
                return 'Venda interna exige programa e conta de milhas'
            account = self.account_repo.get(form.account_id)
            if not account or account.get('supplier_id') != supplier_id:
                return 'Conta de milhas não encontrada'
            if account.get('status') != AccountStatus.ACTIVE.value:
                return 'Conta de milhas inativa'
            if account.get('airline_company_id') != form.program_id:
                return 'A conta selecionada não pertence ao programa informado'
            return {
                'account': account,
                'cost_per_thousand': to_float(account.get('cost_per_mile')) * 1000,
            }

        if form.channel == SaleChannel.COUNTER.value:
            missing = []
            if not form.seller_name:
                missing.append('nome do vendedor')
            if not form.seller_contact:
                missing.append('contato do vendedor')
            if form.counter_cost_per_thousand <= 0:
                missing.append('custo do milheiro')
            if not form.counter_airline_program:
                missing.append('programa de milhas')
            if missing:
                return 'Venda de balcão exige: ' + ', '.join(missing)
            return {'account': None, 'cost_per_thousand': form.counter_cost_per_thousand}

        return {'account': None, 'cost_per_thousand': form.cost_per_thousand}

    @profile_function(name="Registrar venda")
    def create_sale(
        self,
        data: Union[SaleForm, Dict[str, Any]],
        supplier_id: str,
        user: str,
        today: date = None
    ) -> Dict[str, Any]:
        """
        Registra uma venda com seus trechos.

        Args:
            data: SaleForm ou JSON do formulário
            supplier_id: Agência dona da venda
            user: E-mail de quem registrou
            today: Data de referência (padrão: hoje)

        Returns:
            {'ok': True, 'sale_id', 'sale'} ou {'ok': False, 'sale_id': '', 'error'}
        """
        if not supplier_id:
            return _fail('Agência não encontrada para o usuário')

        form = data if isinstance(data, SaleForm) else SaleForm.from_dict(data)
        if form.channel not in CHANNEL_STORAGE:
            return _fail('Canal de venda inválido. Use: internal, counter ou legacy')

        errors = form.validate(require_segments=form.channel != SaleChannel.LEGACY.value)
        if errors:
            return _fail('; '.join(errors))

        context = self._validate_channel(form, supplier_id)
        if isinstance(context, str):
            return _fail(context)

        today = today or date.today()
        miles = form.total_miles if form.total_miles else form.segment_miles
        account = context['account']
        passengers = self._passenger_cpfs(form)

        if account is not None:
            if miles <= 0:
                return _fail('Informe a quantidade de milhas')
            if miles > to_float(account.get('balance')):
                return _fail('Saldo insuficiente na conta de milhas')
            for passenger in passengers:
                if len(passenger['cpf']) != 11:
                    return _fail(f"CPF inválido para o passageiro {passenger['name'] or passenger['cpf']}")
                if self.cpf_service.is_blocked(account['airline_company_id'], passenger['cpf'], today):
                    return _fail(f"CPF de {passenger['name'] or 'passageiro'} bloqueado neste programa")

        financials = compute_sale_financials(
            form.price_total, miles, context['cost_per_thousand'], form.boarding_fee
        )
        stored_channel, sale_source = CHANNEL_STORAGE[form.channel]
        sale_date = parse_br_date(form.sale_date) or today

        payment_status = form.payment_status
        if payment_status not in {s.value for s in PaymentStatus}:
            payment_status = PaymentStatus.PENDING.value
        paid_amount = form.price_total if payment_status == PaymentStatus.PAID.value else 0.0

        record = {
            'supplier_id': supplier_id,
            'user_id': user,
            'channel': stored_channel,
            'sale_source': sale_source,
            'client_name': form.customer_name,
            'client_cpf_encrypted': only_digits(form.customer_cpf),
            'client_contact': form.customer_phone,
            'passengers': form.passengers,
            'passenger_cpfs': passengers,
            'trip_type': form.trip_type,
            'route_text': form.route_text,
            'miles_used': miles,
            'cost_per_thousand': round(context['cost_per_thousand'], 4),
            'price_total': form.price_total,
            'boarding_fee': form.boarding_fee,
            'total_cost': financials['total_cost'],
            'profit': financials['profit'],
            'profit_margin': financials['profit_margin'],
            'mileage_account_id': account['id'] if account else None,
            'airline_company_id': account['airline_company_id'] if account else None,
            'counter_seller_name': form.seller_name or None,
            'counter_seller_contact': form.seller_contact or None,
            'counter_cost_per_thousand': form.counter_cost_per_thousand or None,
            'counter_airline_program': form.counter_airline_program or form.airline_program or None,
            'payment_method': form.payment_method or None,
            'payment_status': payment_status,
            'paid_amount': paid_amount,
            'paid_at': datetime.now(timezone.utc).isoformat() if paid_amount else None,
            'status': SaleStatus.COMPLETED.value,
            'sale_date': format_date_iso(sale_date),
            'notes': form.notes,
            'locator': form.locator.upper() or None,
        }
        sale = self.sales_repo.insert(record)

        direction = SEGMENT_DIRECTIONS.get(form.trip_type, 'oneway')
        for position, segment in enumerate(form.flight_segments):
            self.segment_repo.insert({
                'sale_id': sale['id'],
                'direction': direction,
                'from_code': segment.from_code,
                'to_code': segment.to_code,
                'date': segment.date,
                'flight_number': segment.flight_number,
                'miles': segment.miles,
                'position': position,
            })

        if account is not None:
            self.account_service.update_account_balance(account['id'], -miles)
            for passenger in passengers:
                self.cpf_service.register_cpf_usage(
                    supplier_id, account['airline_company_id'], passenger['cpf'], passenger['name'], today
                )
                self.cpf_service.register_account_cpf(account['id'], passenger['cpf'])
            self.account_service.update_account_cpf_count(account['id'])

        if self.audit_service:
            self.audit_service.log_sale_created(user, sale)
        if self.customer_service:
            self.customer_service.record_purchase(supplier_id, sale)

        return {'ok': True, 'sale_id': sale['id'], 'sale': sale}

    # =========================================================================
    # CONSULTA
    # =========================================================================

    def list_sales(self, supplier_id: str, filters: Dict[str, Any] = None) -> List[Dict[str, Any]]:
        """
        Vendas da agência com filtros opcionais:
        channel, payment_status, search (cliente/rota/localizador),
        date_from, date_to (AAAA-MM-DD ou DD/MM/AAAA), account_id.
        """
        filters = filters or {}
        sales = self.sales_repo.load(supplier_id)

        channel = filters.get('channel')
        if channel:
            channel = 'balcao' if channel == SaleChannel.COUNTER.value else channel
            sales = [s for s in sales if s.get('channel') == channel]
        if filters.get('payment_status'):
            sales = [s for s in sales if s.get('payment_status') == filters['payment_status']]
        if filters.get('account_id'):
            sales = [s for s in sales if s.get('mileage_account_id') == filters['account_id']]

        search = (filters.get('search') or '').strip().lower()
        if search:
            sales = [
                s for s in sales
                if search in ' '.join(
                    str(s.get(k) or '') for k in ('client_name', 'route_text', 'locator')
                ).lower()
            ]

        date_from = parse_br_date(filters.get('date_from'))
        date_to = parse_br_date(filters.get('date_to'))
        if date_from:
            sales = [s for s in sales if (s.get('sale_date') or '') >= date_from.isoformat()]
        if date_to:
            sales = [s for s in sales if (s.get('sale_date') or '') <= date_to.isoformat()]
        return sales

    def get_sale(self, supplier_id: str, sale_id: str) -> Optional[Dict[str, Any]]:
        """Venda com trechos e pagamentos, ou None."""
        sale = self.sales_repo.get(sale_id)
        if not sale or sale.get('supplier_id') != supplier_id:
            return None
        detail = dict(sale)
        detail['segments'] = self.segment_repo.list_by_sale(sale_id)
        detail['payments'] = self.payment_repo.list_by_sale(sale_id)
        detail['pending_amount'] = round(max(0.0, to_float(sale.get('price_total')) - to_float(sale.get('paid_amount'))), 2)
        return detail

    # =========================================================================
    # EDIÇÃO E EXCLUSÃO
    # =========================================================================

    def update_sale(self, supplier_id: str, sale_id: str, data: Dict[str, Any], user: str) -> Dict[str, Any]:
        """Atualiza campos editáveis e recalcula custo, lucro e margem."""
        sale = self.sales_repo.get(sale_id)
        if not sale or sale.get('supplier_id') != supplier_id:
            return {'ok': False, 'error': 'Venda não encontrada'}

        updates = {k: data[k] for k in EDITABLE_FIELDS if k in data}
        if 'price_total' in updates:
            updates['price_total'] = to_float(updates['price_total'])
            if updates['price_total'] < 0:
                return {'ok': False, 'error': 'Valor total não pode ser negativo'}
        if 'boarding_fee' in updates:
            updates['boarding_fee'] = to_float(updates['boarding_fee'])
        if 'status' in updates and updates['status'] not in {s.value for s in SaleStatus}:
            return {'ok': False, 'error': 'Status de venda inválido'}
        if 'sale_date' in updates:
            parsed = parse_br_date(updates['sale_date'])
            if not parsed:
                return {'ok': False, 'error': 'Data da venda inválida (use DD/MM/AAAA)'}
            updates['sale_date'] = format_date_iso(parsed)

        if 'payment_status' in data:
            if data['payment_status'] not in MANUAL_PAYMENT_STATUSES:
                return {'ok': False, 'error': 'Status de pagamento inválido. Use: overdue ou refunded'}
            updates['payment_status'] = data['payment_status']

        merged = dict(sale, **updates)
        updates.update({
            k: v for k, v in compute_sale_financials(
                merged.get('price_total'), merged.get('miles_used'),
                merged.get('cost_per_thousand'), merged.get('boarding_fee')
            ).items() if k != 'miles_cost'
        })
        if 'price_total' in updates and merged.get('payment_status') not in MANUAL_PAYMENT_STATUSES:
            status = payment_status_for(to_float(sale.get('paid_amount')), updates['price_total'])
            updates['payment_status'] = status
            if status != PaymentStatus.PAID.value:
                updates['paid_at'] = None
            elif not sale.get('paid_at'):
                updates['paid_at'] = datetime.now(timezone.utc).isoformat()
        updated = self.sales_repo.update_by_id(sale_id, updates)
        logger.info("[VENDA] %s atualizada por %s", sale_id, user)
        return {'ok': True, 'sale': updated}

    def delete_sale(self, supplier_id: str, sale_id: str, user: str) -> Dict[str, Any]:
        """
        Exclui a venda, seus trechos e pagamentos.
        Vendas de conta própria devolvem as milhas ao saldo.
        """
        sale = self.sales_repo.get(sale_id)
        if not sale or sale.get('supplier_id') != supplier_id:
            return {'ok': False, 'error': 'Venda não encontrada'}

        if sale.get('mileage_account_id'):
            self.account_service.update_account_balance(
                sale['mileage_account_id'], to_float(sale.get('miles_used'))
            )
        self.segment_repo.delete_by_sale(sale_id)
        self.payment_repo.delete_where(lambda r: r.get('sale_id') == sale_id)
        self.sales_repo.delete_by_id(sale_id)

        if self.audit_service:
            self.audit_service.log_sale_deleted(user, sale)
        return {'ok': True}

    def bulk_delete(self, supplier_id: str, sale_ids: List[str], user: str) -> Dict[str, Any]:
        deleted, errors = 0, []
        for sale_id in sale_ids or []:
            result = self.delete_sale(supplier_id, sale_id, user)
            if result['ok']:
                deleted += 1
            else:
                errors.append({'sale_id': sale_id, 'error': result['error']})
        return {'ok': deleted > 0 or not errors, 'deleted': deleted, 'errors': errors}
