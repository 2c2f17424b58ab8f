from datetime import date

from agencia_milhas.services.report_service import CSV_HEADER, calculate_kpis

from conftest import OWNER_EMAIL, counter_sale_payload, internal_sale_payload

SALES = [
    {
        'channel': 'internal', 'sale_source': 'internal_account', 'price_total': 500,
        'total_cost': 250, 'miles_used': 10000, 'boarding_fee': 50, 'passengers': 1,
        'mileage_account_id': 'acc1', 'payment_method': 'pix',
    },
    {
        'channel': 'balcao', 'sale_source': 'mileage_counter', 'price_total': 1200,
        'total_cost': 640, 'miles_used': 30000, 'boarding_fee': 100, 'passengers': 2,
        'counter_airline_program': 'SMILES', 'payment_method': 'credit_card',
        'final_price_with_interest': 1260,
    },
]
ACCOUNTS = {'acc1': {'id': 'acc1', 'account_number': '123', 'airline_company_id': 'al1'}}
AIRLINES = {'al1': {'id': 'al1', 'name': 'LATAM Pass', 'code': 'LATAM'}}


def test_calculate_kpis_totals():
    kpis = calculate_kpis(SALES, ACCOUNTS, AIRLINES)
    assert kpis['gross_revenue'] == 1700.0
    assert kpis['revenue_with_interest'] == 1760.0
    assert kpis['total_cost'] == 890.0
    assert kpis['total_boarding_fees'] == 250.0
    assert kpis['total_miles_cost'] == 640.0
    assert kpis['gross_profit'] == 810.0
    assert kpis['gross_margin_percent'] == 47.65
    assert kpis['average_ticket'] == 850.0
    assert kpis['average_cost_per_thousand'] == 16.0
    assert kpis['sales_count'] == 2


def test_calculate_kpis_breakdowns():
    kpis = calculate_kpis(SALES, ACCOUNTS, AIRLINES)

    assert kpis['by_channel']['internal']['profit'] == 250.0
    assert kpis['by_channel']['internal']['margin_percent'] == 50.0
    assert kpis['by_channel']['counter']['margin_percent'] == 46.67

    account = kpis['by_account'][0]
    assert account['airline_name'] == 'LATAM Pass'
    assert account['profit'] == 250.0

    assert [a['airline_name'] for a in kpis['by_airline']] == ['SMILES', 'LATAM Pass']
    assert kpis['by_airline'][0]['airline_code'] == 'N/A'

    assert kpis['by_payment_method'][0] == {
        'payment_method': 'credit_card', 'sales_count': 1, 'revenue': 1200.0, 'average_ticket': 1200.0,
    }


def test_calculate_kpis_empty():
    kpis = calculate_kpis([], {}, {})
    assert kpis['gross_revenue'] == 0.0
    assert kpis['gross_margin_percent'] == 0.0
    assert kpis['average_ticket'] == 0.0
    assert kpis['by_account'] == []


def _seed(container, agency, airline, account):
    sales = container.sales_service
    sales.create_sale(internal_sale_payload(airline, account), agency, OWNER_EMAIL)
    sales.create_sale(counter_sale_payload(payment_status='paid'), agency, OWNER_EMAIL)
    sales.create_sale({
        'channel': 'legacy', 'customer_name': 'Antigo', 'total_miles': 5000,
        'cost_per_thousand': 20, 'price_total': 300, 'sale_date': '2020-01-15',
    }, agency, OWNER_EMAIL)


def test_financial_kpis_period(container, agency, airline, account):
    _seed(container, agency, airline, account)
    reports = container.report_service

    assert reports.financial_kpis(agency)['sales_count'] == 3
    old = reports.financial_kpis(agency, '01/01/2020', '31/01/2020')
    assert old['sales_count'] == 1
    assert old['gross_revenue'] == 300.0


def test_sales_kpis(container, agency, airline, account):
    _seed(container, agency, airline, account)
    container.account_service.create_account(agency, {
        'account_number': '999', 'airline_company_id': airline['id'], 'balance': 1000,
    }, OWNER_EMAIL)

    kpis = container.report_service.sales_kpis(agency, period_days=30, today=date.today())
    assert kpis['sales_count'] == 2
    assert kpis['total_revenue'] == 1700.0
    assert kpis['total_miles_sold'] == 40000
    assert kpis['average_price_per_thousand'] == 42.5
    assert kpis['average_margin'] == 47.65
    assert {p['program'] for p in kpis['top_programs']} == {'LATAM Pass', 'SMILES'}
    assert [a['account_number'] for a in kpis['low_balance_accounts']] == ['999']


def test_export_sales_csv(container, agency, airline, account):
    _seed(container, agency, airline, account)
    content = container.report_service.export_sales_csv(agency, {'payment_status': 'paid'})
    lines = content.splitlines()
    assert lines[0] == ';'.join(CSV_HEADER)
    assert len(lines) == 2
    assert lines[1].split(';')[1] == 'Bruno Lima'
