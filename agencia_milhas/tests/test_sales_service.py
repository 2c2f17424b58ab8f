from datetime import date

from conftest import CPF_ANA, CPF_BRUNO, OWNER_EMAIL, counter_sale_payload, internal_sale_payload


def test_internal_sale_debits_account_and_registers_cpf(container, agency, airline, account):
    result = container.sales_service.create_sale(internal_sale_payload(airline, account), agency, OWNER_EMAIL)
    assert result['ok'], result
    sale = result['sale']

    assert sale['channel'] == 'internal'
    assert sale['sale_source'] == 'internal_account'
    assert sale['route_text'] == 'GRU-GIG'
    assert sale['miles_used'] == 10000
    assert sale['cost_per_thousand'] == 20.0
    assert sale['total_cost'] == 250.0
    assert sale['profit'] == 250.0
    assert sale['profit_margin'] == 50.0
    assert sale['payment_status'] == 'pending'
    assert sale['sale_date'] == date.today().isoformat()

    updated = container.account_repo.get(account['id'])
    assert updated['balance'] == 90000
    assert updated['cpf_count'] == 1

    entry = container.cpf_repo.find_entry(airline['id'], CPF_ANA)
    assert entry['usage_count'] == 1

    segments = container.segment_repo.list_by_sale(sale['id'])
    assert len(segments) == 1
    assert segments[0]['from_code'] == 'GRU'
    assert segments[0]['direction'] == 'oneway'


def test_internal_sale_with_passenger_list(container, agency, airline, account):
    payload = internal_sale_payload(airline, account, passengers=2, passenger_cpfs=[
        {'name': 'Ana', 'cpf': '529.982.247-25'},
        {'name': 'Bruno', 'cpf': CPF_BRUNO},
    ])
    result = container.sales_service.create_sale(payload, agency, OWNER_EMAIL)
    assert result['ok'], result
    assert container.account_repo.get(account['id'])['cpf_count'] == 2
    assert container.cpf_repo.find_entry(airline['id'], CPF_BRUNO)['usage_count'] == 1


def test_blocked_cpf_rejects_sale(container, agency, airline, account):
    sales = container.sales_service
    # limite do programa é 2 CPFs: o segundo uso bloqueia
    assert sales.create_sale(internal_sale_payload(airline, account), agency, OWNER_EMAIL)['ok']
    assert sales.create_sale(internal_sale_payload(airline, account), agency, OWNER_EMAIL)['ok']

    result = sales.create_sale(internal_sale_payload(airline, account), agency, OWNER_EMAIL)
    assert not result['ok']
    assert result['sale_id'] == ''
    assert 'bloqueado' in result['error']
    assert container.account_repo.get(account['id'])['balance'] == 80000


def test_insufficient_balance(container, agency, airline, account):
    payload = internal_sale_payload(airline, account, total_miles=200000)
    result = container.sales_service.create_sale(payload, agency, OWNER_EMAIL)
    assert result['error'] == 'Saldo insuficiente na conta de milhas'
    assert container.sales_repo.load(agency) == []


def test_account_must_belong_to_program(container, agency, airline, account):
    gol = container.airline_service.create_airline(agency, {'code': 'GOL', 'name': 'Smiles'}, OWNER_EMAIL)['airline']
    payload = internal_sale_payload(airline, account, program_id=gol['id'])
    result = container.sales_service.create_sale(payload, agency, OWNER_EMAIL)
    assert result['error'] == 'A conta selecionada não pertence ao programa informado'


def test_internal_sale_requires_account(container, agency, airline, account):
    payload = internal_sale_payload(airline, account, account_id='')
    result = container.sales_service.create_sale(payload, agency, OWNER_EMAIL)
    assert result['error'] == 'Venda interna exige programa e conta de milhas'


def test_inactive_account_rejected(container, agency, airline, account):
    container.account_service.update_account(agency, account['id'], {'status': 'inactive'}, OWNER_EMAIL)
    result = container.sales_service.create_sale(internal_sale_payload(airline, account), agency, OWNER_EMAIL)
    assert result['error'] == 'Conta de milhas inativa'


def test_counter_sale(container, agency):
    result = container.sales_service.create_sale(counter_sale_payload(), agency, OWNER_EMAIL)
    assert result['ok'], result
    sale = result['sale']
    assert sale['channel'] == 'balcao'
    assert sale['sale_source'] == 'mileage_counter'
    assert sale['mileage_account_id'] is None
    assert sale['counter_airline_program'] == 'SMILES'
    assert sale['total_cost'] == 640.0
    assert sale['profit'] == 560.0


def test_counter_sale_lists_missing_fields(container, agency):
    payload = counter_sale_payload(seller_contact='', counter_cost_per_thousand=0)
    result = container.sales_service.create_sale(payload, agency, OWNER_EMAIL)
    assert result['error'] == 'Venda de balcão exige: contato do vendedor, custo do milheiro'


def test_legacy_sale_without_segments(container, agency):
    result = container.sales_service.create_sale({
        'channel': 'legacy',
        'customer_name': 'João da Silva',
        'total_miles': 25000,
        'cost_per_thousand': 18.5,
        'price_total': 1850,
        'boarding_fee': 320,
        'payment_status': 'paid',
        'sale_date': '21/11/2025',
    }, agency, OWNER_EMAIL)
    assert result['ok'], result
    sale = result['sale']
    assert sale['channel'] == 'internal'
    assert sale['sale_source'] == 'bulk_import'
    assert sale['profit'] == 1067.5
    assert sale['paid_amount'] == 1850
    assert sale['sale_date'] == '2025-11-21'


def test_form_validation_errors(container, agency, airline, account):
    sales = container.sales_service
    assert sales.create_sale({'channel': 'xyz'}, agency, OWNER_EMAIL)['error'].startswith('Canal de venda inválido')

    result = sales.create_sale(internal_sale_payload(airline, account, customer_name=''), agency, OWNER_EMAIL)
    assert 'Nome do cliente é obrigatório' in result['error']

    result = sales.create_sale(internal_sale_payload(airline, account, flight_segments=[]), agency, OWNER_EMAIL)
    assert 'Informe ao menos um trecho' in result['error']

    assert not sales.create_sale(internal_sale_payload(airline, account), None, OWNER_EMAIL)['ok']


def test_delete_sale_restores_miles(container, agency, airline, account):
    sale_id = container.sales_service.create_sale(
        internal_sale_payload(airline, account), agency, OWNER_EMAIL)['sale_id']
    assert container.account_repo.get(account['id'])['balance'] == 90000

    assert container.sales_service.delete_sale(agency, sale_id, OWNER_EMAIL)['ok']
    assert container.account_repo.get(account['id'])['balance'] == 100000
    assert container.segment_repo.list_by_sale(sale_id) == []
    assert container.sales_service.get_sale(agency, sale_id) is None


def test_sales_are_scoped_by_agency(container, agency, airline, account):
    sale_id = container.sales_service.create_sale(
        internal_sale_payload(airline, account), agency, OWNER_EMAIL)['sale_id']
    assert container.sales_service.get_sale('outra-agencia', sale_id) is None
    assert container.sales_service.delete_sale('outra-agencia', sale_id, OWNER_EMAIL)['error'] == 'Venda não encontrada'


def test_list_sales_filters(container, agency, airline, account):
    sales = container.sales_service
    sales.create_sale(internal_sale_payload(airline, account, sale_date='2025-01-10'), agency, OWNER_EMAIL)
    sales.create_sale(counter_sale_payload(sale_date='2025-02-10'), agency, OWNER_EMAIL)

    assert len(sales.list_sales(agency)) == 2
    assert [s['client_name'] for s in sales.list_sales(agency, {'channel': 'counter'})] == ['Bruno Lima']
    assert [s['client_name'] for s in sales.list_sales(agency, {'search': 'gru-gig'})] == ['Ana Souza']
    assert [s['client_name'] for s in sales.list_sales(agency, {'date_from': '01/02/2025'})] == ['Bruno Lima']
    assert [s['client_name'] for s in sales.list_sales(agency, {'account_id': account['id']})] == ['Ana Souza']


def test_update_sale_recalculates_profit(container, agency, airline, account):
    sale_id = container.sales_service.create_sale(
        internal_sale_payload(airline, account), agency, OWNER_EMAIL)['sale_id']

    result = container.sales_service.update_sale(agency, sale_id, {'price_total': 600}, OWNER_EMAIL)
    assert result['ok']
    assert result['sale']['profit'] == 350.0
    assert result['sale']['profit_margin'] == 58.33

    bad = container.sales_service.update_sale(agency, sale_id, {'sale_date': '32/13/2025'}, OWNER_EMAIL)
    assert not bad['ok']


def test_bulk_delete(container, agency):
    ids = [
        container.sales_service.create_sale(counter_sale_payload(), agency, OWNER_EMAIL)['sale_id']
        for _ in range(2)
    ]
    result = container.sales_service.bulk_delete(agency, ids + ['inexistente'], OWNER_EMAIL)
    assert result['ok']
    assert result['deleted'] == 2
    assert result['errors'] == [{'sale_id': 'inexistente', 'error': 'Venda não encontrada'}]


def test_price_change_recomputes_payment_status(container, agency):
    sales = container.sales_service
    sale_id = sales.create_sale(counter_sale_payload(payment_status='paid'), agency, OWNER_EMAIL)['sale_id']

    result = sales.update_sale(agency, sale_id, {'price_total': 5000}, OWNER_EMAIL)
    assert result['sale']['payment_status'] == 'partial'
    assert result['sale']['paid_at'] is None

    result = sales.update_sale(agency, sale_id, {'price_total': 1000}, OWNER_EMAIL)
    assert result['sale']['payment_status'] == 'paid'
    assert result['sale']['paid_at']


def test_manual_payment_status(container, agency):
    sales = container.sales_service
    sale_id = sales.create_sale(counter_sale_payload(), agency, OWNER_EMAIL)['sale_id']

    result = sales.update_sale(agency, sale_id, {'payment_status': 'refunded'}, OWNER_EMAIL)
    assert result['sale']['payment_status'] == 'refunded'

    # status manual não é sobrescrito pela mudança de valor
    result = sales.update_sale(agency, sale_id, {'price_total': 900}, OWNER_EMAIL)
    assert result['sale']['payment_status'] == 'refunded'

    bad = sales.update_sale(agency, sale_id, {'payment_status': 'paid'}, OWNER_EMAIL)
    assert bad['error'] == 'Status de pagamento inválido. Use: overdue ou refunded'
