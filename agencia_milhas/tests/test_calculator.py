from agencia_milhas.models import CalculatorInputs
from agencia_milhas.services.calculator import (
    calculate_installments,
    calculate_miles,
    compute_sale_financials,
    normalize_rates,
    simulate_margin,
)


def test_sale_financials():
    result = compute_sale_financials(1850, 25000, 18.5, 320)
    assert result == {
        'miles_cost': 462.5,
        'total_cost': 782.5,
        'profit': 1067.5,
        'profit_margin': 57.7,
    }


def test_sale_financials_zero_price_has_zero_margin():
    result = compute_sale_financials(0, 10000, 20)
    assert result['profit'] == -200.0
    assert result['profit_margin'] == 0.0


def test_calculate_miles_suggested_price():
    results = calculate_miles(CalculatorInputs(
        miles=10000, cost_per_thousand=20, boarding_fee=50, passengers=2, target_margin=20,
    ))
    assert results.cost_per_passenger == 250.0
    assert results.total_cost == 500.0
    assert results.suggested_price == 625.0
    assert results.final_price == 625.0
    assert results.profit == 125.0
    assert results.profit_margin == 20.0
    assert results.effective_cost_per_mile == 0.05
    assert results.price_per_thousand == 62.5


def test_calculate_miles_manual_price_wins():
    results = calculate_miles(CalculatorInputs(
        miles=10000, cost_per_thousand=20, boarding_fee=50, passengers=2,
        target_margin=20, manual_price=700,
    ))
    assert results.suggested_price == 625.0
    assert results.final_price == 700.0
    assert results.profit == 200.0


def test_simulate_margin():
    sim = simulate_margin(10000, 30, 0, 0.02, 20)
    assert sim.gross_value == 300.0
    assert sim.cost_value == 200.0
    assert sim.margin_value == 100.0
    assert sim.margin_percentage == 33.33
    assert sim.break_even_price_per_thousand == 25.0
    assert sim.is_good_margin
    assert not sim.is_negative


def test_simulate_margin_negative():
    sim = simulate_margin(10000, 10, 0, 0.02)
    assert sim.margin_value == -100.0
    assert sim.is_negative
    assert not sim.is_good_margin


def test_normalize_rates():
    assert normalize_rates({'2': '3,5', '3': 4.99, 'x': 1}) == {2: 3.5, 3: 4.99}
    assert normalize_rates(None) == {}


def test_installments_without_config():
    result = calculate_installments(1000, 3)
    assert result.final_price == 1000.0
    assert result.installment_value == 333.33
    assert not result.has_interest


def test_installments_per_installment_rate():
    config = {
        'interest_type': 'per_installment',
        'per_installment_rates': {'3': '4,5'},
        'max_installments': 12,
        'is_active': True,
    }
    result = calculate_installments(1000, 3, config)
    assert result.interest_rate == 4.5
    assert result.final_price == 1045.0
    assert result.installment_value == 348.33
    assert result.has_interest

    # parcela sem taxa cadastrada: sem juros
    assert calculate_installments(1000, 2, config).final_price == 1000.0


def test_installments_total_rate_respects_max_and_active():
    config = {'interest_type': 'total', 'interest_rate': 10, 'max_installments': 6, 'is_active': True}
    assert calculate_installments(1000, 6, config).final_price == 1100.0
    assert calculate_installments(1000, 10, config).final_price == 1000.0

    config['is_active'] = False
    assert calculate_installments(1000, 6, config).final_price == 1000.0
