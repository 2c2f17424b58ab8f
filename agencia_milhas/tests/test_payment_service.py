from agencia_milhas.services.payment_service import payment_status_for

from conftest import OWNER_EMAIL, counter_sale_payload


def _sale(container, agency):
    return container.sales_service.create_sale(counter_sale_payload(), agency, OWNER_EMAIL)['sale_id']


def test_payment_status_for():
    assert payment_status_for(0, 100) == 'pending'
    assert payment_status_for(40, 100) == 'partial'
    assert payment_status_for(100, 100) == 'paid'
    assert payment_status_for(150, 100) == 'paid'


def test_partial_then_paid(container, agency):
    payments = container.payment_service
    sale_id = _sale(container, agency)

    first = payments.register_payment(agency, sale_id, '500,00', 'pix', '10/03/2025', user=OWNER_EMAIL)
    assert first['ok']
    assert first['paid_amount'] == 500.0
    assert first['payment_status'] == 'partial'
    assert first['payment']['payment_date'] == '2025-03-10'

    second = payments.register_payment(agency, sale_id, 700, 'credit_card', user=OWNER_EMAIL)
    assert second['payment_status'] == 'paid'

    sale = container.sales_service.get_sale(agency, sale_id)
    assert sale['paid_amount'] == 1200.0
    assert sale['pending_amount'] == 0.0
    assert sale['paid_at']
    assert len(sale['payments']) == 2


def test_delete_payment_recalculates(container, agency):
    payments = container.payment_service
    sale_id = _sale(container, agency)
    payment = payments.register_payment(agency, sale_id, 1200, 'pix', user=OWNER_EMAIL)['payment']

    assert payments.delete_payment(agency, payment['id'], OWNER_EMAIL)['ok']
    sale = container.sales_repo.get(sale_id)
    assert sale['payment_status'] == 'pending'
    assert sale['paid_amount'] == 0
    assert sale['paid_at'] is None


def test_payment_validation(container, agency):
    payments = container.payment_service
    sale_id = _sale(container, agency)

    assert payments.register_payment(agency, 'x', 10, 'pix')['error'] == 'Venda não encontrada'
    assert payments.register_payment(agency, sale_id, '0', 'pix')['error'] == \
        'O valor do pagamento deve ser maior que zero'
    assert payments.register_payment(agency, sale_id, 10, '')['error'] == 'Forma de pagamento é obrigatória'
    assert payments.register_payment(agency, sale_id, 10, 'pix', 'ontem')['error'] == 'Data do pagamento inválida'
    assert payments.list_payments('outra-agencia', sale_id) == []


def test_sale_created_paid_keeps_paid_after_new_payment(container, agency):
    payments = container.payment_service
    sale_id = container.sales_service.create_sale(
        counter_sale_payload(payment_status='paid'), agency, OWNER_EMAIL)['sale_id']

    extra = payments.register_payment(agency, sale_id, 100, 'pix', user=OWNER_EMAIL)
    assert extra['paid_amount'] == 1300.0
    assert extra['payment_status'] == 'paid'

    assert payments.delete_payment(agency, extra['payment']['id'], OWNER_EMAIL)['ok']
    sale = container.sales_repo.get(sale_id)
    assert sale['paid_amount'] == 1200.0
    assert sale['payment_status'] == 'paid'
    assert sale['paid_at']
