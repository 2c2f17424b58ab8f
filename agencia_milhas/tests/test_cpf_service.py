from datetime import date

from agencia_milhas.services.cpf_service import CpfService

from conftest import CPF_ANA, CPF_BRUNO, OWNER_EMAIL


def test_evaluate_status():
    assert CpfService.evaluate_status(1, 2) == 'available'
    assert CpfService.evaluate_status(2, 2) == 'blocked'
    assert CpfService.evaluate_status(3, 2) == 'blocked'


def test_compute_blocked_until():
    assert CpfService.compute_blocked_until('rolling', date(2025, 3, 10)) == date(2026, 3, 10)
    assert CpfService.compute_blocked_until('annual', date(2025, 3, 10), date(2025, 8, 1)) == date(2026, 1, 1)


def test_effective_rule_order(container, agency, airline):
    cpf = container.cpf_service
    rule = cpf.effective_rule(agency, airline['id'])
    assert rule == {'cpf_limit': 2, 'renewal_type': 'annual', 'source': 'airline'}

    saved = cpf.save_program_rule(agency, airline['id'], 5, 'rolling', OWNER_EMAIL)
    assert saved['ok']
    rule = cpf.effective_rule(agency, airline['id'])
    assert rule == {'cpf_limit': 5, 'renewal_type': 'rolling', 'source': 'program_rule'}

    # segunda gravação atualiza a mesma regra
    cpf.save_program_rule(agency, airline['id'], 7, 'annual', OWNER_EMAIL)
    assert cpf.effective_rule(agency, airline['id'])['cpf_limit'] == 7
    assert len(container.program_rule_repo.get_all()) == 1


def test_effective_rule_unknown_airline_uses_default(container, agency):
    rule = container.cpf_service.effective_rule(agency, 'nao-existe')
    assert rule == {'cpf_limit': 25, 'renewal_type': 'annual', 'source': 'default'}


def test_save_program_rule_validation(container, agency, airline):
    cpf = container.cpf_service
    assert cpf.save_program_rule(agency, airline['id'], 0, 'annual', OWNER_EMAIL)['error'] == \
        'Limite de CPFs deve ser maior que zero'
    assert not cpf.save_program_rule(agency, airline['id'], 5, 'mensal', OWNER_EMAIL)['ok']
    assert not cpf.save_program_rule(agency, 'nao-existe', 5, 'annual', OWNER_EMAIL)['ok']


def test_usage_blocks_at_limit_and_releases(container, agency, airline):
    cpf = container.cpf_service
    today = date(2025, 3, 10)

    first = cpf.register_cpf_usage(agency, airline['id'], CPF_ANA, 'Ana', today)
    assert first['usage_count'] == 1
    assert first['status'] == 'available'
    assert first['first_use_date'] == '2025-03-10'

    second = cpf.register_cpf_usage(agency, airline['id'], CPF_ANA, 'Ana', today)
    assert second['usage_count'] == 2
    assert second['status'] == 'blocked'
    assert second['blocked_until'] == '2026-01-01'

    assert cpf.is_blocked(airline['id'], CPF_ANA, date(2025, 12, 31))
    assert not cpf.is_blocked(airline['id'], CPF_ANA, date(2026, 1, 1))
    assert not cpf.is_blocked(airline['id'], CPF_BRUNO, today)

    assert cpf.release_expired_blocks(agency, today=date(2025, 6, 1)) == 0
    assert cpf.release_expired_blocks(agency, today=date(2026, 1, 2)) == 1
    entry = container.cpf_repo.find_entry(airline['id'], CPF_ANA)
    assert entry['status'] == 'available'
    assert entry['usage_count'] == 0


def test_block_is_audited_once(container, agency, airline):
    cpf = container.cpf_service
    for _ in range(3):
        cpf.register_cpf_usage(agency, airline['id'], CPF_ANA, 'Ana', date(2025, 3, 10))
    logs = container.audit_service.search_logs(agency, log_type='CPF')
    assert len([l for l in logs if 'bloqueado' in l['message'].lower()]) == 1


def test_rolling_renewal_uses_first_use(container, agency, airline):
    cpf = container.cpf_service
    cpf.save_program_rule(agency, airline['id'], 1, 'rolling', OWNER_EMAIL)
    entry = cpf.register_cpf_usage(agency, airline['id'], CPF_ANA, 'Ana', date(2025, 3, 10))
    assert entry['status'] == 'blocked'
    assert entry['blocked_until'] == '2026-03-10'


def test_add_cpf(container, agency, airline):
    cpf = container.cpf_service
    assert cpf.add_cpf(agency, airline['id'], '123', 'X', OWNER_EMAIL)['error'] == 'CPF inválido'

    added = cpf.add_cpf(agency, airline['id'], '529.982.247-25', 'Ana Souza', OWNER_EMAIL)
    assert added['ok']
    assert added['entry']['cpf_encrypted'] == CPF_ANA
    assert added['entry']['usage_count'] == 0

    duplicate = cpf.add_cpf(agency, airline['id'], CPF_ANA, 'Ana', OWNER_EMAIL)
    assert duplicate['error'] == 'CPF já cadastrado neste programa'


def test_list_cpfs_masks_numbers(container, agency, airline):
    cpf = container.cpf_service
    cpf.add_cpf(agency, airline['id'], CPF_BRUNO, 'Bruno', OWNER_EMAIL)
    cpf.register_cpf_usage(agency, airline['id'], CPF_ANA, 'Ana', date(2025, 3, 10))

    rows = cpf.list_cpfs(airline['id'])
    assert [r['full_name'] for r in rows] == ['Ana', 'Bruno']
    assert rows[0]['cpf_masked'] == '***.***.***-25'
    assert all('cpf_encrypted' not in r for r in rows)


def test_renewal_calendar(container, agency, airline):
    cpf = container.cpf_service
    for _ in range(2):
        cpf.register_cpf_usage(agency, airline['id'], CPF_ANA, 'Ana', date(2025, 3, 10))

    calendar = cpf.renewal_calendar(agency, today=date(2025, 12, 15))
    assert len(calendar) == 1
    assert calendar[0]['month'] == '2026-01'
    entry = calendar[0]['entries'][0]
    assert entry['days_left'] == 17
    assert entry['renewal_near'] is True

    far = cpf.renewal_calendar(agency, today=date(2025, 6, 1))
    assert far[0]['entries'][0]['renewal_near'] is False

    assert cpf.renewal_calendar(agency, airline_id='outra', today=date(2025, 12, 15)) == []


def test_account_cpf_count_is_distinct(container, account):
    cpf = container.cpf_service
    assert cpf.register_account_cpf(account['id'], CPF_ANA)
    cpf.register_account_cpf(account['id'], CPF_ANA)
    cpf.register_account_cpf(account['id'], CPF_BRUNO)
    assert cpf.count_distinct_cpfs(account['id']) == 2


def test_release_expired_blocks_only_touches_own_agency(container, agency, airline):
    cpf = container.cpf_service
    other = container.airline_service.create_airline('outra', {
        'code': 'LATAM', 'name': 'LATAM', 'cpf_limit': 2, 'renewal_type': 'annual',
    }, OWNER_EMAIL)['airline']
    for _ in range(2):
        cpf.register_cpf_usage(agency, airline['id'], CPF_ANA, 'Ana', date(2025, 3, 10))
        cpf.register_cpf_usage('outra', other['id'], CPF_BRUNO, 'Bruno', date(2025, 3, 10))

    assert cpf.release_expired_blocks(agency, today=date(2026, 1, 2)) == 1
    assert container.cpf_repo.find_entry(airline['id'], CPF_ANA)['status'] == 'available'
    assert container.cpf_repo.find_entry(other['id'], CPF_BRUNO)['status'] == 'blocked'
