import os

import pytest

from agencia_milhas import performance_logger as pl
from agencia_milhas.main import create_app


@pytest.fixture
def profiling(monkeypatch, tmp_path):
    # init_profiling altera o estado global; monkeypatch devolve os valores originais
    monkeypatch.setitem(pl._settings, 'enabled', True)
    monkeypatch.setitem(pl._settings, 'logs_dir', str(tmp_path / 'logs'))
    pl.reset_stats()
    yield tmp_path / 'logs'
    pl.reset_stats()


def test_profile_function_collects_stats(profiling):
    @pl.profile_function(name='Somar')
    def somar(a, b):
        return a + b

    assert somar(1, 2) == 3
    somar(2, 2)

    stats = pl.get_function_stats()['Somar']
    assert stats['calls'] == 2
    assert stats['max_time'] >= stats['avg_time']

    pl.reset_stats()
    assert pl.get_function_stats() == {}


def test_profile_function_without_parentheses(profiling):
    @pl.profile_function
    def dobrar(x):
        return x * 2

    assert dobrar(4) == 8
    assert pl.get_function_stats()['dobrar']['calls'] == 1


def test_disabled_profiling_records_nothing(profiling, monkeypatch):
    monkeypatch.setitem(pl._settings, 'enabled', False)

    @pl.profile_function(name='Desligada')
    def noop():
        return None

    noop()
    assert 'Desligada' not in pl.get_function_stats()


def test_route_names():
    assert pl._get_route_name('POST', '/api/sales') == 'Registrar venda'
    assert pl._get_route_name('POST', '/api/sales/abc/payments', '/api/sales/<sale_id>/payments') == \
        'Registrar pagamento'
    assert pl._get_route_name('GET', '/api/outra') == 'GET /api/outra'


def test_slow_route_log(profiling):
    pl.log_slow_route('POST', '/api/sales', '/api/sales', 950, 'dono@agencia.com', 'CRITICAL')
    content = (profiling / pl.SLOW_ROUTES_LOG).read_text(encoding='utf-8')
    assert 'MUITO LENTA' in content
    assert 'Registrar venda' in content
    assert 'limite: 700 ms' in content


def test_requests_are_logged_when_enabled(profiling, tmp_path):
    app = create_app({
        'TESTING': True,
        'DATA_DIR': str(tmp_path / 'data'),
        'ENABLE_BACKUPS': False,
        'ENABLE_PROFILING': True,
    })
    with app.test_client() as client:
        client.get('/api/csrf-token')

    log_file = os.path.join(str(tmp_path / 'data'), 'logs', pl.PERFORMANCE_LOG)
    with open(log_file, encoding='utf-8') as f:
        content = f.read()
    assert 'Rota: GET /api/csrf-token' in content
    assert 'Usuário: anônimo' in content
