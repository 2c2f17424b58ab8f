# ==============================================================================
# SERVIÇO DE RELATÓRIOS
# ==============================================================================
# Indicadores financeiros e de vendas do painel, mais a exportação em CSV.
#
# RECEITA:  price_total (vendas antigas usam sale_price)
# CUSTO:    total_cost = custo das milhas + taxas de embarque
# LUCRO:    receita - custo
# ==============================================================================

import csv
import io
import logging
from collections import defaultdict
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List

from agencia_milhas.helpers import parse_br_date, to_float, to_int
from agencia_milhas.models import SaleChannel, SaleSource
from agencia_milhas.repositories import AccountRepository, AirlineRepository, SalesRepository
from agencia_milhas.services.account_service import LOW_BALANCE_THRESHOLD, AccountService

logger = logging.getLogger(__name__)

TOP_PROGRAMS_LIMIT = 5
LOW_BALANCE_LIMIT = 5

CSV_HEADER = [
    'data_venda', 'cliente', 'canal', 'rota', 'localizador', 'milhas',
    'custo_milheiro', 'valor_venda', 'taxa_embarque', 'custo_total', 'lucro',
    'margem', 'forma_pagamento', 'status_pagamento', 'valor_pago',
]


def _revenue(sale: Dict[str, Any]) -> float:
    return to_float(sale.get('price_total') or sale.get('sale_price'))


def _margin(profit: float, revenue: float) -> float:
    return round(profit / revenue * 100, 2) if revenue > 0 else 0.0


def _is_internal(sale: Dict[str, Any]) -> bool:
    return sale.get('channel') == SaleChannel.INTERNAL.value or sale.get('sale_source') == SaleSource.INTERNAL_ACCOUNT.value


def _is_counter(sale: Dict[str, Any]) -> bool:
    return sale.get('channel') == 'balcao' or sale.get('sale_source') == SaleSource.MILEAGE_COUNTER.value


# ═══════════════════════════════════════════════════════════════════════════════
# KPIs FINANCEIROS (funções puras)
# ═══════════════════════════════════════════════════════════════════════════════

def calculate_kpis(
    sales: Iterable[Dict[str, Any]],
    accounts_by_id: Dict[str, Dict[str, Any]],
    airlines_by_id: Dict[str, Dict[str, Any]]
) -> Dict[str, Any]:
    """
    Calcula os indicadores financeiros de um conjunto de vendas.

    Args:
        sales: Vendas já filtradas (período, agência)
        accounts_by_id: Contas de milhas indexadas por id
        airlines_by_id: Companhias indexadas por id

    Returns:
        Totais gerais mais quebras por conta, companhia, canal e forma de pagamento
    """
    sales = list(sales)

    gross_revenue = 0.0
    revenue_with_interest = 0.0
    total_cost = 0.0
    total_fees = 0.0
    total_miles = 0.0

    by_account: Dict[str, Dict[str, Any]] = {}
    by_airline: Dict[str, Dict[str, Any]] = {}
    by_channel = {
        'internal': {'sales_count': 0, 'revenue': 0.0, 'cost': 0.0},
        'counter': {'sales_count': 0, 'revenue': 0.0, 'cost': 0.0},
    }
    by_payment: Dict[str, Dict[str, Any]] = defaultdict(lambda: {'sales_count': 0, 'revenue': 0.0})

    for sale in sales:
        revenue = _revenue(sale)
        cost = to_float(sale.get('total_cost'))
        miles = to_float(sale.get('miles_used'))
        # A taxa de embarque do painel é por passageiro
        fees = to_float(sale.get('boarding_fee')) * (to_int(sale.get('passengers'), 1) or 1)

        gross_revenue += revenue
        revenue_with_interest += to_float(sale.get('final_price_with_interest')) or revenue
        total_cost += cost
        total_fees += fees
        total_miles += miles

        account_id = sale.get('mileage_account_id')
        account = accounts_by_id.get(account_id) if account_id else None
        if account:
            airline = airlines_by_id.get(account.get('airline_company_id')) or {}
            entry = by_account.setdefault(account_id, {
                'account_id': account_id,
                'account_number': account.get('account_number'),
                'airline_name': airline.get('name') or 'N/A',
                'miles_used': 0.0, 'total_cost': 0.0, 'revenue': 0.0, 'sales_count': 0,
            })
            entry['miles_used'] += miles
            entry['total_cost'] += cost
            entry['revenue'] += revenue
            entry['sales_count'] += 1

        airline_id = (account or {}).get('airline_company_id') or sale.get('program_id') or sale.get('airline_company_id')
        airline = airlines_by_id.get(airline_id) if airline_id else None
        key = airline_id or 'counter'
        entry = by_airline.setdefault(key, {
            'airline_id': key,
            'airline_name': (airline or {}).get('name') or sale.get('counter_airline_program') or 'Balcão',
            'airline_code': (airline or {}).get('code') or 'N/A',
            'miles_used': 0.0, 'revenue': 0.0, 'cost': 0.0, 'sales_count': 0,
        })
        entry['miles_used'] += miles
        entry['revenue'] += revenue
        entry['cost'] += cost
        entry['sales_count'] += 1

        if _is_internal(sale):
            channel = by_channel['internal']
        elif _is_counter(sale):
            channel = by_channel['counter']
        else:
            channel = None
        if channel is not None:
            channel['sales_count'] += 1
            channel['revenue'] += revenue
            channel['cost'] += cost

        method = by_payment[sale.get('payment_method') or 'Não informado']
        method['sales_count'] += 1
        method['revenue'] += revenue

    for entry in by_account.values():
        entry['profit'] = round(entry['revenue'] - entry['total_cost'], 2)
        entry['margin_percent'] = _margin(entry['profit'], entry['revenue'])
    for entry in by_airline.values():
        entry['profit'] = round(entry['revenue'] - entry['cost'], 2)
        entry['margin_percent'] = _margin(entry['profit'], entry['revenue'])
    for entry in by_channel.values():
        entry['profit'] = round(entry['revenue'] - entry['cost'], 2)
        entry['margin_percent'] = _margin(entry['profit'], entry['revenue'])

    payment_rows = []
    for method, entry in by_payment.items():
        payment_rows.append({
            'payment_method': method,
            'sales_count': entry['sales_count'],
            'revenue': round(entry['revenue'], 2),
            'average_ticket': round(entry['revenue'] / entry['sales_count'], 2),
        })

    miles_cost = total_cost - total_fees
    gross_profit = gross_revenue - total_cost
    count = len(sales)

    return {
        'gross_revenue': round(gross_revenue, 2),
        'revenue_with_interest': round(revenue_with_interest, 2),
        'total_cost': round(total_cost, 2),
        'total_boarding_fees': round(total_fees, 2),
        'total_miles_cost': round(miles_cost, 2),
        'net_revenue': round(gross_profit, 2),
        'gross_profit': round(gross_profit, 2),
        'gross_margin_percent': _margin(gross_profit, gross_revenue),
        'average_ticket': round(gross_revenue / count, 2) if count else 0.0,
        'total_miles_used': total_miles,
        'average_cost_per_thousand': round(miles_cost / total_miles * 1000, 2) if total_miles > 0 else 0.0,
        'sales_count': count,
        'by_account': sorted(by_account.values(), key=lambda e: e['revenue'], reverse=True),
        'by_airline': sorted(by_airline.values(), key=lambda e: e['revenue'], reverse=True),
        'by_channel': by_channel,
        'by_payment_method': sorted(payment_rows, key=lambda e: e['revenue'], reverse=True),
    }


def _in_period(sale: Dict[str, Any], start: date = None, end: date = None) -> bool:
    if not (start or end):
        return True
    sale_date = parse_br_date(sale.get('sale_date') or (sale.get('created_at') or '')[:10])
    if sale_date is None:
        return False
    if start and sale_date < start:
        return False
    if end and sale_date > end:
        return False
    return True


class ReportService:
    """
    Responsabilidades:
    - KPIs financeiros por período
    - KPIs de vendas do painel (últimos N dias)
    - Exportação das vendas em CSV
    """

    def __init__(
        self,
        sales_repo: SalesRepository,
        account_repo: AccountRepository,
        airline_repo: AirlineRepository,
        account_service: AccountService
    ):
        self.sales_repo = sales_repo
        self.account_repo = account_repo
        self.airline_repo = airline_repo
        self.account_service = account_service

    def _sales_between(self, supplier_id: str, date_from: Any = None, date_to: Any = None) -> List[Dict[str, Any]]:
        start = parse_br_date(date_from) if date_from else None
        end = parse_br_date(date_to) if date_to else None
        return [s for s in self.sales_repo.load(supplier_id) if _in_period(s, start, end)]

    def financial_kpis(self, supplier_id: str, date_from: Any = None, date_to: Any = None) -> Dict[str, Any]:
        sales = self._sales_between(supplier_id, date_from, date_to)
        accounts = {a['id']: a for a in self.account_repo.list_by_supplier(supplier_id)}
        airlines = {a['id']: a for a in self.airline_repo.list_by_supplier(supplier_id)}
        return calculate_kpis(sales, accounts, airlines)

    def sales_kpis(self, supplier_id: str, period_days: int = 30, today: date = None) -> Dict[str, Any]:
        """Indicadores do painel de vendas para os últimos period_days dias."""
        today = today or date.today()
        start = today - timedelta(days=max(0, period_days))
        sales = [s for s in self.sales_repo.load(supplier_id) if _in_period(s, start, today)]

        revenue = sum(_revenue(s) for s in sales)
        miles = sum(to_float(s.get('miles_used')) for s in sales)
        profit = sum(to_float(s.get('profit')) for s in sales)

        airlines = {a['id']: a for a in self.airline_repo.list_by_supplier(supplier_id)}
        programs: Dict[str, Dict[str, Any]] = {}
        for sale in sales:
            airline_id = sale.get('airline_company_id')
            airline = airlines.get(airline_id) if airline_id else None
            name = (airline or {}).get('name') or sale.get('counter_airline_program') or 'Balcão'
            entry = programs.setdefault(name, {'program': name, 'sales_count': 0, 'miles': 0.0, 'revenue': 0.0})
            entry['sales_count'] += 1
            entry['miles'] += to_float(sale.get('miles_used'))
            entry['revenue'] += _revenue(sale)
        top_programs = sorted(programs.values(), key=lambda e: e['sales_count'], reverse=True)[:TOP_PROGRAMS_LIMIT]

        low_balance = sorted(
            self.account_service.low_balance_accounts(supplier_id, LOW_BALANCE_THRESHOLD),
            key=lambda a: to_float(a.get('balance'))
        )[:LOW_BALANCE_LIMIT]

        return {
            'period_days': period_days,
            'total_revenue': round(revenue, 2),
            'total_miles_sold': miles,
            'average_price_per_thousand': round(revenue / miles * 1000, 2) if miles > 0 else 0.0,
            'average_margin': _margin(profit, revenue),
            'sales_count': len(sales),
            'top_programs': top_programs,
            'low_balance_accounts': low_balance,
        }

    def export_sales_csv(self, supplier_id: str, filters: Dict[str, Any] = None) -> str:
        """Vendas da agência em CSV (separador ';' para abrir direto no Excel)."""
        filters = filters or {}
        sales = self._sales_between(supplier_id, filters.get('date_from'), filters.get('date_to'))
        status = filters.get('payment_status')
        if status:
            sales = [s for s in sales if s.get('payment_status') == status]

        si = io.StringIO()
        writer = csv.writer(si, delimiter=';')
        writer.writerow(CSV_HEADER)
        for s in sales:
            writer.writerow([
                s.get('sale_date'), s.get('client_name'), s.get('channel'),
                s.get('route_text'), s.get('locator'), s.get('miles_used'),
                s.get('cost_per_thousand'), _revenue(s), s.get('boarding_fee'),
                s.get('total_cost'), s.get('profit'), s.get('profit_margin'),
                s.get('payment_method'), s.get('payment_status'), s.get('paid_amount'),
            ])
        logger.info("[RELATÓRIO] %d vendas exportadas para a agência %s", len(sales), supplier_id)
        return si.getvalue()
