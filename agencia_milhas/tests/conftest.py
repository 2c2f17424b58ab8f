import json
from types import SimpleNamespace

import pytest

from agencia_milhas.app_container import AppContainer
from agencia_milhas.main import create_app

OWNER_EMAIL = 'dono@agencia.com'
OWNER_PASSWORD = 'senha123'
WEBHOOK_SECRET = 'whsec_teste'

# CPFs com dígitos verificadores válidos
CPF_ANA = '52998224725'
CPF_BRUNO = '11144477735'
CPF_CARLA = '39053344705'

AI_REPLY = {
    'pnr': 'ABC123',
    'ticketNumber': '957-2100000001',
    'passengerName': 'SILVA/ANA',
    'cpf': CPF_ANA,
    'route': 'GRU-GIG',
    'departureDate': '2025-11-21',
    'airline': 'LATAM',
    'flightNumber': 'LA3456',
}


class FakeAIClient:
    """Imita anthropic.Anthropic: client.messages.create(...).content[0].text"""

    def __init__(self, reply):
        self.reply = reply
        self.calls = []
        self.messages = self

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if isinstance(self.reply, Exception):
            raise self.reply
        return SimpleNamespace(content=[SimpleNamespace(text=self.reply)])


# ── serviços (sem Flask) ─────────────────────────────────────────────────────

@pytest.fixture
def container(tmp_path):
    return AppContainer(str(tmp_path), {'MAX_IMPORT_ROWS': 500})


@pytest.fixture
def agency(container):
    """Agência cadastrada; devolve o supplier_id."""
    result = container.user_service.register(OWNER_EMAIL, OWNER_PASSWORD, 'Agência Teste', 'Dona Teste')
    assert result['ok'], result
    return result['supplier']['id']


@pytest.fixture
def airline(container, agency):
    result = container.airline_service.create_airline(agency, {
        'code': 'LATAM',
        'name': 'LATAM Pass',
        'cpf_limit': 2,
        'renewal_type': 'annual',
        'cost_per_mile': 0.02,
    }, OWNER_EMAIL)
    assert result['ok'], result
    return result['airline']


@pytest.fixture
def account(container, agency, airline):
    result = container.account_service.create_account(agency, {
        'account_number': '123456',
        'account_holder_name': 'Titular Teste',
        'airline_company_id': airline['id'],
        'balance': 100000,
        'cost_per_mile': 0.02,
    }, OWNER_EMAIL)
    assert result['ok'], result
    return result['account']


def internal_sale_payload(airline, account, **overrides):
    payload = {
        'channel': 'internal',
        'customer_name': 'Ana Souza',
        'customer_cpf': CPF_ANA,
        'customer_phone': '11987654321',
        'passengers': 1,
        'trip_type': 'one_way',
        'flight_segments': [{'from': 'gru', 'to': 'gig', 'date': '2025-11-21', 'miles': 10000}],
        'price_total': 500,
        'boarding_fee': 50,
        'program_id': airline['id'],
        'account_id': account['id'],
        'payment_method': 'pix',
    }
    payload.update(overrides)
    return payload


def counter_sale_payload(**overrides):
    payload = {
        'channel': 'counter',
        'customer_name': 'Bruno Lima',
        'passengers': 2,
        'trip_type': 'one_way',
        'flight_segments': [{'from': 'FOR', 'to': 'GRU', 'date': '2025-12-01', 'miles': 30000}],
        'price_total': 1200,
        'boarding_fee': 100,
        'seller_name': 'Fornecedor X',
        'seller_contact': '11999990000',
        'counter_cost_per_thousand': 18,
        'counter_airline_program': 'SMILES',
        'payment_method': 'credit_card',
    }
    payload.update(overrides)
    return payload


# ── aplicação Flask ──────────────────────────────────────────────────────────

@pytest.fixture
def ai_client():
    return FakeAIClient(json.dumps(AI_REPLY))


@pytest.fixture
def app(tmp_path, ai_client):
    return create_app({
        'TESTING': True,
        'SECRET_KEY': 'chave-de-teste',
        'DATA_DIR': str(tmp_path / 'data'),
        'ENABLE_BACKUPS': False,
        'ENABLE_PROFILING': False,
        'ALWAYS_ACTIVE_EMAILS': [OWNER_EMAIL],
        'PAYMENT_WEBHOOK_SECRET': WEBHOOK_SECRET,
        'ANTHROPIC_API_KEY': 'sk-teste',
    }, ai_client=ai_client)


@pytest.fixture
def client(app):
    with app.test_client() as c:
        yield c


def get_csrf(client):
    r = client.get('/api/csrf-token')
    assert r.status_code == 200
    return r.get_json()['csrf_token']


def register_owner(client, email=OWNER_EMAIL, agency_name='Agência Teste'):
    token = get_csrf(client)
    r = client.post('/api/auth/register', json={
        'email': email, 'password': OWNER_PASSWORD, 'agency_name': agency_name,
    }, headers={'X-CSRF-Token': token})
    assert r.status_code == 200, r.get_json()
    return token


@pytest.fixture
def token(client):
    """Dono da agência logado; devolve o token CSRF da sessão."""
    return register_owner(client)
