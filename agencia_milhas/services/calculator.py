# ==============================================================================
# CALCULADORAS - Custos, margens e juros
# ==============================================================================
# Funções puras usadas por vendas, orçamentos e relatórios.
#
# Fórmula base de uma venda:
#   custo_milhas = milhas / 1000 × custo_milheiro
#   custo_total  = custo_milhas + taxa_embarque
#   lucro        = preço − custo_total
#   margem (%)   = lucro / preço × 100   (0 quando preço = 0)
# ==============================================================================

from typing import Any, Dict, Optional

from agencia_milhas.helpers import parse_br_number, to_int
from agencia_milhas.models import (
    CalculatorInputs,
    CalculatorResults,
    InstallmentResult,
    MarginSimulation,
)

# Custo padrão por milha quando a conta não informa (R$ 29,00 o milheiro)
DEFAULT_COST_PER_MILE = 0.029

# Margem a partir da qual o simulador considera o preço saudável
GOOD_MARGIN_PERCENT = 15.0


def compute_sale_financials(
    price_total: float,
    miles: float,
    cost_per_thousand: float,
    boarding_fee: float = 0.0
) -> Dict[str, float]:
    """
    Calcula custo, lucro e margem de uma venda.

    Args:
        price_total: Valor cobrado do cliente
        miles: Milhas usadas
        cost_per_thousand: Custo do milheiro (R$ por 1.000 milhas)
        boarding_fee: Taxas de embarque repassadas

    Returns:
        Dict com miles_cost, total_cost, profit e profit_margin
    """
    price_total = float(price_total or 0)
    miles = float(miles or 0)
    cost_per_thousand = float(cost_per_thousand or 0)
    boarding_fee = float(boarding_fee or 0)

    miles_cost = (miles / 1000) * cost_per_thousand if miles > 0 else 0.0
    total_cost = miles_cost + boarding_fee
    profit = price_total - total_cost
    margin = (profit / price_total) * 100 if price_total > 0 else 0.0

    return {
        'miles_cost': round(miles_cost, 2),
        'total_cost': round(total_cost, 2),
        'profit': round(profit, 2),
        'profit_margin': round(margin, 2),
    }


def calculate_miles(inputs: CalculatorInputs) -> CalculatorResults:
    """
    Calculadora de cotação: custo por passageiro, preço sugerido pela
    margem desejada e indicadores do preço final.

    O preço manual, quando maior que zero, substitui o sugerido.
    """
    miles = float(inputs.miles or 0)
    passengers = max(1, int(inputs.passengers or 1))
    target = float(inputs.target_margin or 0)

    cost_per_passenger = (miles / 1000) * float(inputs.cost_per_thousand or 0) + float(inputs.boarding_fee or 0)
    total_cost = cost_per_passenger * passengers

    if 0 < target < 100:
        suggested = total_cost / (1 - target / 100)
    else:
        suggested = total_cost

    final_price = float(inputs.manual_price) if inputs.manual_price and inputs.manual_price > 0 else suggested
    profit = final_price - total_cost

    return CalculatorResults(
        cost_per_passenger=round(cost_per_passenger, 2),
        total_cost=round(total_cost, 2),
        suggested_price=round(suggested, 2),
        final_price=round(final_price, 2),
        profit=round(profit, 2),
        profit_margin=round((profit / final_price) * 100, 2) if final_price > 0 else 0.0,
        effective_cost_per_mile=round(total_cost / miles, 5) if miles > 0 else 0.0,
        price_per_thousand=round((final_price / miles) * 1000, 2) if miles > 0 else 0.0,
    )


def simulate_margin(
    miles: float,
    price_per_thousand: float,
    fees: float = 0.0,
    cost_per_mile: float = DEFAULT_COST_PER_MILE,
    target_margin: float = 20.0
) -> MarginSimulation:
    """
    Simulador de margem por milheiro.

    break_even_price_per_thousand é o milheiro necessário para atingir
    target_margin sobre o custo das milhas.
    """
    miles = float(miles or 0)
    fees = float(fees or 0)
    gross = (miles / 1000) * float(price_per_thousand or 0) + fees
    cost = miles * float(cost_per_mile or 0)
    margin_value = gross - cost
    margin_pct = (margin_value / gross) * 100 if gross > 0 else 0.0

    target = float(target_margin or 0)
    if miles > 0 and target < 100:
        break_even = ((cost / (1 - target / 100) - fees) / miles) * 1000
    else:
        break_even = 0.0

    return MarginSimulation(
        gross_value=round(gross, 2),
        cost_value=round(cost, 2),
        margin_value=round(margin_value, 2),
        margin_percentage=round(margin_pct, 2),
        break_even_price_per_thousand=round(break_even, 2),
        is_negative=margin_value < 0,
        is_good_margin=margin_pct >= GOOD_MARGIN_PERCENT,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# JUROS DE PARCELAMENTO
# ═══════════════════════════════════════════════════════════════════════════════

def normalize_rates(raw: Any) -> Dict[int, float]:
    """
    Normaliza as taxas por parcela vindas do formulário/JSON.

    {"2": "3,5", "3": 4.99} -> {2: 3.5, 3: 4.99}
    Chaves não numéricas são descartadas.
    """
    if not isinstance(raw, dict):
        return {}
    rates = {}
    for key, value in raw.items():
        installments = to_int(key, 0)
        if installments <= 0:
            continue
        rates[installments] = parse_br_number(value)
    return rates


def calculate_installments(
    total: float,
    installments: int,
    config: Optional[Dict[str, Any]] = None
) -> InstallmentResult:
    """
    Aplica os juros configurados para a forma de pagamento.

    Sem configuração ativa, ou com parcelas acima do máximo configurado,
    não há juros. No modo 'per_installment' vale a taxa da quantidade de
    parcelas; no modo 'total' vale interest_rate.

    Args:
        total: Valor à vista
        installments: Quantidade de parcelas (mínimo 1)
        config: Registro ativo de payment_interest_config (ou None)
    """
    total = float(total or 0)
    installments = max(1, int(installments or 1))

    rate = 0.0
    if config and config.get('is_active', True):
        max_installments = to_int(config.get('max_installments'), 0)
        if not max_installments or installments <= max_installments:
            if config.get('interest_type') == 'per_installment':
                rate = normalize_rates(config.get('per_installment_rates')).get(installments, 0.0)
            else:
                rate = parse_br_number(config.get('interest_rate'))

    rate = rate if rate and rate > 0 else 0.0
    final_price = total * (1 + rate / 100)

    return InstallmentResult(
        installments=installments,
        installment_value=round(final_price / installments, 2),
        final_price=round(final_price, 2),
        interest_rate=rate,
        has_interest=rate > 0,
    )
