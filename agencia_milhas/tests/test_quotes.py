from conftest import OWNER_EMAIL


def _credit_config(container, agency, **overrides):
    data = {'payment_type': 'credit', 'interest_type': 'total', 'interest_rate': '10', 'max_installments': 12}
    data.update(overrides)
    return container.payment_method_service.save_interest_config(agency, data)


# ── juros ────────────────────────────────────────────────────────────────────

def test_save_interest_config_replaces_existing(container, agency):
    methods = container.payment_method_service
    assert _credit_config(container, agency)['ok']
    result = _credit_config(container, agency, interest_type='per_installment',
                            per_installment_rates={'2': '2,5', '3': 4})
    assert result['config']['per_installment_rates'] == {'2': 2.5, '3': 4.0}

    configs = container.interest_repo.list_by_supplier(agency)
    assert len(configs) == 1
    assert methods.get_interest_config(agency, 'credit')['interest_type'] == 'per_installment'
    assert methods.get_interest_config(agency, 'debit') is None


def test_save_interest_config_validation(container, agency):
    methods = container.payment_method_service
    assert methods.save_interest_config(agency, {'payment_type': 'pix'})['error'] == \
        'Tipo de pagamento inválido. Use: debit ou credit'
    assert not methods.save_interest_config(agency, {'payment_type': 'credit', 'interest_type': 'composto'})['ok']
    assert methods.save_interest_config(agency, {'payment_type': 'credit', 'interest_rate': '-1'})['error'] == \
        'Taxa de juros não pode ser negativa'


# ── formas de pagamento ──────────────────────────────────────────────────────

def test_payment_methods(container, agency):
    methods = container.payment_method_service
    assert methods.create_method(agency, {'method_name': 'Cheque', 'method_type': 'cheque'})['error'].startswith(
        'Tipo inválido')
    assert methods.create_method(agency, {'method_type': 'pix'})['error'] == \
        'Nome da forma de pagamento é obrigatório'

    pix = methods.create_method(agency, {'method_name': 'PIX', 'method_type': 'pix', 'display_order': 2})['method']
    card = methods.create_method(agency, {'method_name': 'Cartão', 'method_type': 'credit_card',
                                          'display_order': 1})['method']
    assert [m['method_name'] for m in methods.list_methods(agency)] == ['Cartão', 'PIX']

    methods.update_method(agency, card['id'], {'is_active': False})
    assert [m['method_name'] for m in methods.list_methods(agency, only_active=True)] == ['PIX']

    assert methods.delete_method('outra', pix['id'])['error'] == 'Forma de pagamento não encontrada'
    assert methods.delete_method(agency, pix['id'])['ok']


# ── orçamentos ───────────────────────────────────────────────────────────────

def test_quote_applies_credit_interest(container, agency):
    _credit_config(container, agency)
    result = container.quote_service.create_quote(agency, {
        'client_name': 'Ana', 'route': 'gru-mco', 'total_price': '1.000,00',
        'installments': 3, 'departure_date': '21/11/2025',
    }, OWNER_EMAIL)
    assert result['ok']
    quote = result['quote']
    assert quote['payment_type'] == 'credit'
    assert quote['route'] == 'GRU-MCO'
    assert quote['departure_date'] == '2025-11-21'
    assert quote['interest_rate'] == 10.0
    assert quote['final_price_with_interest'] == 1100.0
    assert quote['installment_value'] == 366.67
    assert quote['status'] == 'pending'


def test_quote_without_interest_config(container, agency):
    quote = container.quote_service.create_quote(agency, {
        'client_name': 'Ana', 'total_price': 800,
    }, OWNER_EMAIL)['quote']
    assert quote['payment_type'] == 'debit'
    assert quote['final_price_with_interest'] == 800.0
    assert quote['installments'] == 1


def test_quote_validation(container, agency):
    quotes = container.quote_service
    assert quotes.create_quote(agency, {'total_price': 100}, OWNER_EMAIL)['error'] == 'Nome do cliente é obrigatório'
    assert quotes.create_quote(agency, {'client_name': 'Ana'}, OWNER_EMAIL)['error'] == \
        'Valor total deve ser maior que zero'
    assert quotes.create_quote(agency, {'client_name': 'Ana', 'total_price': 10, 'trip_type': 'x'},
                               OWNER_EMAIL)['error'] == 'Tipo de viagem inválido'


def test_quote_update_and_status(container, agency):
    quotes = container.quote_service
    quote = quotes.create_quote(agency, {'client_name': 'Ana', 'total_price': 800}, OWNER_EMAIL)['quote']

    updated = quotes.update_quote(agency, quote['id'], {'total_price': 900}, OWNER_EMAIL)
    assert updated['quote']['final_price_with_interest'] == 900.0
    assert updated['quote']['client_name'] == 'Ana'

    assert quotes.set_status(agency, quote['id'], 'arquivado', OWNER_EMAIL)['error'] == 'Status inválido'
    sent = quotes.set_status(agency, quote['id'], 'sent', OWNER_EMAIL)['quote']
    assert sent['status'] == 'sent'
    assert sent['sent_at']
    assert [q['id'] for q in quotes.list_quotes(agency, status='sent')] == [quote['id']]

    assert quotes.get_quote('outra', quote['id']) is None
    assert quotes.delete_quote(agency, quote['id'], OWNER_EMAIL)['ok']
    assert quotes.list_quotes(agency) == []


def test_convert_quote_to_counter_sale(container, agency):
    quotes = container.quote_service
    quote = quotes.create_quote(agency, {
        'client_name': 'Bruno Lima', 'client_phone': '11999990000', 'passengers': 2,
        'miles_needed': 30000, 'boarding_fee': 100, 'total_price': 1200,
    }, OWNER_EMAIL)['quote']

    failed = quotes.convert_to_sale(agency, quote['id'], {}, OWNER_EMAIL)
    assert not failed['ok']
    assert quotes.get_quote(agency, quote['id'])['status'] == 'pending'

    result = quotes.convert_to_sale(agency, quote['id'], {
        'channel': 'counter',
        'flight_segments': [{'from': 'FOR', 'to': 'GRU', 'date': '2025-12-01'}],
        'seller_name': 'Fornecedor X',
        'seller_contact': '11999990000',
        'counter_cost_per_thousand': 18,
        'counter_airline_program': 'SMILES',
    }, OWNER_EMAIL)
    assert result['ok'], result
    sale = result['sale']
    assert sale['client_name'] == 'Bruno Lima'
    assert sale['miles_used'] == 30000
    assert sale['price_total'] == 1200
    assert sale['total_cost'] == 640.0

    converted = quotes.get_quote(agency, quote['id'])
    assert converted['status'] == 'accepted'
    assert converted['converted_to_sale_id'] == result['sale_id']

    assert quotes.convert_to_sale(agency, quote['id'], {}, OWNER_EMAIL)['error'] == 'Orçamento já convertido em venda'
    assert quotes.update_quote(agency, quote['id'], {'total_price': 1}, OWNER_EMAIL)['error'] == \
        'Orçamento já convertido em venda'
