from conftest import OWNER_EMAIL


# ── companhias ───────────────────────────────────────────────────────────────

def test_create_airline_defaults_and_duplicates(container, agency):
    airlines = container.airline_service
    result = airlines.create_airline(agency, {'code': ' azul ', 'name': 'TudoAzul'}, OWNER_EMAIL)
    assert result['ok']
    airline = result['airline']
    assert airline['code'] == 'AZUL'
    assert airline['cpf_limit'] == 25
    assert airline['renewal_type'] == 'annual'
    assert airline['cost_per_mile'] == 0.029

    assert airlines.create_airline(agency, {'code': 'AZUL', 'name': 'Outra'}, OWNER_EMAIL)['error'] == \
        'Companhia AZUL já cadastrada'
    assert airlines.create_airline(agency, {'name': 'Sem código'}, OWNER_EMAIL)['error'] == \
        'Código da companhia é obrigatório'
    assert airlines.create_airline(agency, {'code': 'X', 'name': 'X', 'renewal_type': 'mensal'},
                                   OWNER_EMAIL)['error'].startswith('Tipo de renovação inválido')
    assert airlines.create_airline(agency, {'code': 'Y', 'name': 'Y', 'cpf_limit': 0}, OWNER_EMAIL)['error'] == \
        'Limite de CPFs deve ser maior que zero'


def test_airlines_are_scoped_by_agency(container, agency, airline):
    airlines = container.airline_service
    assert airlines.get_airline('outra', airline['id']) is None
    assert airlines.update_airline('outra', airline['id'], {'name': 'X'}, OWNER_EMAIL)['error'] == \
        'Companhia aérea não encontrada'
    # o mesmo código pode existir em outra agência
    assert airlines.create_airline('outra', {'code': 'LATAM', 'name': 'LATAM'}, OWNER_EMAIL)['ok']
    assert [a['code'] for a in airlines.list_airlines(agency)] == ['LATAM']


def test_ensure_airline_exists(container, agency, airline):
    airlines = container.airline_service
    assert airlines.ensure_airline_exists('latam', agency) == airline['id']

    new_id = airlines.ensure_airline_exists('GOL', agency, OWNER_EMAIL)
    created = airlines.get_airline(agency, new_id)
    assert created['name'] == 'GOL'
    assert created['cpf_limit'] == 25
    assert airlines.ensure_airline_exists('', agency) is None


def test_delete_airline_removes_link(container, agency, airline):
    assert container.supplier_airline_repo.find_all_by('airline_company_id', airline['id'])
    assert container.airline_service.delete_airline(agency, airline['id'], OWNER_EMAIL)['ok']
    assert container.supplier_airline_repo.find_all_by('airline_company_id', airline['id']) == []


# ── fornecedores de milhas ───────────────────────────────────────────────────

def test_suppliers(container, agency):
    suppliers = container.supplier_service
    assert suppliers.save_supplier(agency, {'name': ''}, OWNER_EMAIL)['error'] == 'Nome do fornecedor é obrigatório'
    assert suppliers.save_supplier(agency, {'name': 'Y', 'payment_type': 'fiado'}, OWNER_EMAIL)['error'].startswith(
        'Tipo de pagamento inválido')

    supplier = suppliers.save_supplier(agency, {'name': ' Zeca Milhas ', 'pix_key': 'zeca@pix'}, OWNER_EMAIL)['supplier']
    assert supplier['name'] == 'Zeca Milhas'
    assert supplier['payment_type'] == 'prepaid'
    suppliers.save_supplier(agency, {'name': 'Ana Milhas', 'payment_type': 'per_use'}, OWNER_EMAIL)
    assert [s['name'] for s in suppliers.list_suppliers(agency)] == ['Ana Milhas', 'Zeca Milhas']

    updated = suppliers.save_supplier(agency, {'name': 'Zeca'}, OWNER_EMAIL, supplier_id=supplier['id'])
    assert updated['supplier']['name'] == 'Zeca'
    assert suppliers.save_supplier('outra', {'name': 'Z'}, OWNER_EMAIL, supplier_id=supplier['id'])['error'] == \
        'Fornecedor não encontrado'

    assert suppliers.delete_supplier('outra', supplier['id'])['error'] == 'Fornecedor não encontrado'
    assert suppliers.delete_supplier(agency, supplier['id'])['ok']
    assert len(suppliers.list_suppliers(agency)) == 1


# ── contas ───────────────────────────────────────────────────────────────────

def test_create_account_inherits_program_values(container, agency, airline):
    result = container.account_service.create_account(agency, {
        'account_number': '777', 'airline_company_id': airline['id'], 'account_holder_cpf': '529.982.247-25',
    }, OWNER_EMAIL)
    assert result['ok']
    account = result['account']
    assert account['cost_per_mile'] == 0.02
    assert account['cpf_limit'] == 2
    assert account['balance'] == 0.0
    assert account['cpf_count'] == 0
    assert account['status'] == 'active'
    assert account['account_holder_cpf'] == '52998224725'


def test_create_account_validation(container, agency, airline):
    accounts = container.account_service
    base = {'account_number': '1', 'airline_company_id': airline['id']}
    assert accounts.create_account(agency, dict(base, account_number=''), OWNER_EMAIL)['error'] == \
        'Número da conta é obrigatório'
    assert accounts.create_account(agency, dict(base, airline_company_id='x'), OWNER_EMAIL)['error'] == \
        'Programa de milhas não encontrado'
    assert accounts.create_account('outra', base, OWNER_EMAIL)['error'] == 'Programa de milhas não encontrado'
    assert accounts.create_account(agency, dict(base, balance=-1), OWNER_EMAIL)['error'] == \
        'Saldo não pode ser negativo'
    assert accounts.create_account(agency, dict(base, status='bloqueada'), OWNER_EMAIL)['error'] == 'Status inválido'


def test_list_accounts_joins_airline(container, agency, airline, account):
    accounts = container.account_service
    container.account_service.update_account(agency, account['id'], {'status': 'inactive'}, OWNER_EMAIL)

    rows = accounts.list_accounts(agency)
    assert rows[0]['airline_name'] == 'LATAM Pass'
    assert rows[0]['airline_code'] == 'LATAM'
    assert accounts.list_accounts(agency, status='active') == []
    assert accounts.list_accounts('outra') == []


def test_update_account_keeps_balance(container, agency, account):
    result = container.account_service.update_account(agency, account['id'], {
        'balance': 1, 'account_holder_name': 'Novo Titular',
    }, OWNER_EMAIL)
    assert result['account']['balance'] == 100000
    assert result['account']['account_holder_name'] == 'Novo Titular'


def test_movements_adjust_balance(container, agency, account):
    accounts = container.account_service

    credit = accounts.add_movement(agency, account['id'], 'credit', '5000', 'compra', OWNER_EMAIL)
    assert credit['ok']
    assert credit['balance'] == 105000

    debit = accounts.add_movement(agency, account['id'], 'debit', 20000, '', OWNER_EMAIL)
    assert debit['balance'] == 85000

    assert accounts.add_movement(agency, account['id'], 'debit', 999999, '', OWNER_EMAIL)['error'] == \
        'Saldo insuficiente para o débito'
    assert accounts.add_movement(agency, account['id'], 'bonus', 10, '', OWNER_EMAIL)['error'].startswith(
        'Tipo inválido')
    assert accounts.add_movement(agency, account['id'], 'credit', 0, '', OWNER_EMAIL)['error'] == \
        'A quantidade de milhas deve ser maior que zero'
    assert accounts.add_movement('outra', account['id'], 'credit', 10, '', OWNER_EMAIL)['error'] == \
        'Conta não encontrada'

    assert len(accounts.list_movements(agency, account['id'])) == 2
    logs = container.audit_service.search_logs(agency, log_type='CONTA')
    assert len([log for log in logs if 'movement_id' in log['details']]) == 2

    # excluir o débito devolve as milhas
    assert accounts.delete_movement(agency, debit['movement']['id'], OWNER_EMAIL)['balance'] == 105000
    assert accounts.delete_movement('outra', credit['movement']['id'], OWNER_EMAIL)['error'] == \
        'Movimentação não encontrada'


def test_low_balance_accounts(container, agency, airline, account):
    accounts = container.account_service
    accounts.create_account(agency, {
        'account_number': '001', 'airline_company_id': airline['id'], 'balance': 49999,
    }, OWNER_EMAIL)
    accounts.create_account(agency, {
        'account_number': '002', 'airline_company_id': airline['id'], 'balance': 10, 'status': 'inactive',
    }, OWNER_EMAIL)
    assert [a['account_number'] for a in accounts.low_balance_accounts(agency)] == ['001']


def test_delete_account(container, agency, account):
    accounts = container.account_service
    assert accounts.delete_account('outra', account['id'], OWNER_EMAIL)['error'] == 'Conta não encontrada'
    assert accounts.delete_account(agency, account['id'], OWNER_EMAIL)['ok']
    assert accounts.get_account(agency, account['id']) is None


def test_delete_credit_cannot_leave_negative_balance(container, agency, account):
    accounts = container.account_service
    credit = accounts.add_movement(agency, account['id'], 'credit', 10000, '', OWNER_EMAIL)
    assert accounts.add_movement(agency, account['id'], 'debit', 110000, '', OWNER_EMAIL)['balance'] == 0

    result = accounts.delete_movement(agency, credit['movement']['id'], OWNER_EMAIL)
    assert result == {'ok': False, 'error': 'Saldo insuficiente para desfazer o crédito'}
    assert container.account_repo.get(account['id'])['balance'] == 0
    assert len(accounts.list_movements(agency, account['id'])) == 2
