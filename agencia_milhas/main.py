# ==============================================================================
# APLICAÇÃO FLASK - Rotas da API
# ==============================================================================
# As rotas só orquestram: request -> serviço -> JSON.
# Toda regra de negócio vive em services/.
#
# SEGURANÇA:
#   - Sessão Flask (cookie HttpOnly) com e-mail, papel e agência do usuário
#   - Token CSRF obrigatório em toda requisição que altera dados
#     (cabeçalho X-CSRF-Token ou campo csrf_token)
#   - Assinatura ativa (ou e-mail liberado) para usar o sistema
#   - O webhook de pagamentos não usa sessão nem CSRF: vale a assinatura HMAC
# ==============================================================================

import logging
import os
import uuid
from functools import wraps

from flask import Blueprint, Flask, Response, current_app, request, session

from agencia_milhas.app_container import AppContainer
from agencia_milhas.config import DEFAULT_SECRET, load_config
from agencia_milhas.helpers import parse_br_number, to_int
from agencia_milhas.logging_config import setup_logging
from agencia_milhas.models import CalculatorInputs, UserRole
from agencia_milhas.performance_logger import init_profiling
from agencia_milhas.services.backup_service import BackupService, run_startup_backup
from agencia_milhas.services.billing_service import WebhookSignatureError, verify_signature
from agencia_milhas.services.bulk_import_service import generate_template
from agencia_milhas.services.calculator import (
    DEFAULT_COST_PER_MILE,
    calculate_installments,
    calculate_miles,
    simulate_margin,
)
from agencia_milhas.services.ticket_ai_service import TicketAIError
from agencia_milhas.services.ticket_parser import parse_document

logger = logging.getLogger(__name__)

api = Blueprint('api', __name__, url_prefix='/api')

MUTATING_METHODS = ('POST', 'PUT', 'PATCH', 'DELETE')
MANAGER_ROLES = (UserRole.ADMIN.value, UserRole.SUPPLIER_OWNER.value)


def container() -> AppContainer:
    return current_app.extensions['agencia_container']


def _result(result, error_status=400):
    """Resultado {'ok': ...} de um serviço -> resposta JSON."""
    return (result, 200) if result.get('ok') else (result, error_status)


def _error(message, status=400):
    return {'ok': False, 'error': message}, status


def _payload():
    return request.get_json(silent=True) or {}


# ═══════════════════════════════════════════════════════════════════════════════
# DECORADORES DE ACESSO
# ═══════════════════════════════════════════════════════════════════════════════

def generate_csrf_token():
    if 'csrf_token' not in session:
        session['csrf_token'] = uuid.uuid4().hex
    return session['csrf_token']


def verify_csrf(f):
    @wraps(f)
    def wrapper(*args, **kwargs):
        if request.method in MUTATING_METHODS:
            token = session.get('csrf_token')
            form_token = (
                request.headers.get('X-CSRF-Token') or
                request.headers.get('X-CSRFToken') or
                request.form.get('csrf_token')
            )
            if not form_token and request.is_json:
                form_token = _payload().get('csrf_token')
            if not token or not form_token or token != form_token:
                return _error('Token CSRF inválido', 403)
        return f(*args, **kwargs)
    return wrapper


def login_required(f):
    @wraps(f)
    def wrapper(*args, **kwargs):
        if 'user' not in session:
            return _error('Faça login para continuar', 401)
        return f(*args, **kwargs)
    return wrapper


def role_required(*roles):
    def deco(f):
        @wraps(f)
        def wrapper(*args, **kwargs):
            if session.get('role') not in roles:
                return _error('Permissão negada', 403)
            return f(*args, **kwargs)
        return wrapper
    return deco


def agency_required(f):
    """Usuário logado, com agência e com assinatura válida."""
    @wraps(f)
    def wrapper(*args, **kwargs):
        if 'user' not in session:
            return _error('Faça login para continuar', 401)
        if not session.get('supplier_id'):
            return _error('Conclua o cadastro da agência para continuar', 403)
        if not _has_access(container()):
            return _error('Assinatura inativa. Regularize o pagamento para continuar', 402)
        return f(*args, **kwargs)
    return wrapper


def _has_access(c: AppContainer) -> bool:
    # Membros da equipe usam a assinatura do dono da agência
    if c.billing_service.has_access(session['user']):
        return True
    if not session.get('supplier_id'):
        return False
    agency = c.supplier_repo.get(session['supplier_id']) or {}
    return c.billing_service.has_access(agency.get('owner_email'))


def current_supplier():
    return session.get('supplier_id')


def current_user():
    return session.get('user')


def _start_session(user):
    session.permanent = True
    session['user'] = user['email']
    session['role'] = user['role']
    session['supplier_id'] = user.get('supplier_id')


# ═══════════════════════════════════════════════════════════════════════════════
# AUTENTICAÇÃO E USUÁRIOS
# ═══════════════════════════════════════════════════════════════════════════════

@api.route('/csrf-token', methods=['GET'])
def csrf_token():
    return {'ok': True, 'csrf_token': generate_csrf_token()}


@api.route('/auth/register', methods=['POST'])
@verify_csrf
def register():
    data = _payload()
    result = container().user_service.register(
        data.get('email'), data.get('password'), data.get('agency_name'), data.get('full_name') or ''
    )
    if result['ok']:
        _start_session(result['user'])
    return _result(result)


@api.route('/auth/login', methods=['POST'])
@verify_csrf
def login():
    data = _payload()
    email = (data.get('email') or '').strip()
    password = data.get('password') or ''
    if not email or not password:
        return _error('E-mail e senha são obrigatórios')

    user = container().user_service.authenticate(email, password)
    if not user:
        return _error('E-mail ou senha incorretos', 401)
    _start_session(user)
    return {'ok': True, 'user': user}


@api.route('/auth/logout', methods=['POST'])
@login_required
@verify_csrf
def logout():
    session.clear()
    return {'ok': True}


@api.route('/auth/me', methods=['GET'])
@login_required
def me():
    c = container()
    return {
        'ok': True,
        'user': c.user_service.get_user(current_user()),
        'subscription': c.billing_service.get_subscription(current_user()),
        'has_access': _has_access(c),
    }


@api.route('/auth/password', methods=['POST'])
@login_required
@verify_csrf
def change_password():
    data = _payload()
    return _result(container().user_service.change_password(
        current_user(), data.get('current_password'), data.get('new_password')
    ))


@api.route('/users', methods=['GET'])
@agency_required
@role_required(*MANAGER_ROLES)
def list_users():
    return {'ok': True, 'users': container().user_service.list_users(current_supplier())}


@api.route('/users', methods=['POST'])
@agency_required
@role_required(*MANAGER_ROLES)
@verify_csrf
def invite_user():
    data = _payload()
    return _result(container().user_service.invite_user(
        current_user(), data.get('email'), data.get('password'),
        data.get('role') or UserRole.SELLER.value, data.get('full_name') or ''
    ))


# ═══════════════════════════════════════════════════════════════════════════════
# COMPANHIAS AÉREAS, REGRAS DE PROGRAMA E CPFs
# ═══════════════════════════════════════════════════════════════════════════════

@api.route('/airlines', methods=['GET'])
@agency_required
def list_airlines():
    return {'ok': True, 'airlines': container().airline_service.list_airlines(current_supplier())}


@api.route('/airlines', methods=['POST'])
@agency_required
@verify_csrf
def create_airline():
    return _result(container().airline_service.create_airline(current_supplier(), _payload(), current_user()))


@api.route('/airlines/<airline_id>', methods=['PUT'])
@agency_required
@verify_csrf
def update_airline(airline_id):
    return _result(container().airline_service.update_airline(
        current_supplier(), airline_id, _payload(), current_user()
    ))


@api.route('/airlines/<airline_id>', methods=['DELETE'])
@agency_required
@verify_csrf
def delete_airline(airline_id):
    return _result(container().airline_service.delete_airline(current_supplier(), airline_id, current_user()))


@api.route('/airlines/<airline_id>/rule', methods=['GET'])
@agency_required
def get_program_rule(airline_id):
    c = container()
    if not c.airline_service.get_airline(current_supplier(), airline_id):
        return _error('Companhia não encontrada', 404)
    return {'ok': True, 'rule': c.cpf_service.effective_rule(current_supplier(), airline_id)}


@api.route('/airlines/<airline_id>/rule', methods=['PUT'])
@agency_required
@verify_csrf
def save_program_rule(airline_id):
    data = _payload()
    return _result(container().cpf_service.save_program_rule(
        current_supplier(), airline_id, data.get('cpf_limit'), data.get('renewal_type'), current_user()
    ))


@api.route('/airlines/<airline_id>/cpfs', methods=['GET'])
@agency_required
def list_cpfs(airline_id):
    c = container()
    if not c.airline_service.get_airline(current_supplier(), airline_id):
        return _error('Companhia não encontrada', 404)
    return {'ok': True, 'cpfs': c.cpf_service.list_cpfs(airline_id)}


@api.route('/airlines/<airline_id>/cpfs', methods=['POST'])
@agency_required
@verify_csrf
def add_cpf(airline_id):
    c = container()
    if not c.airline_service.get_airline(current_supplier(), airline_id):
        return _error('Companhia não encontrada', 404)
    data = _payload()
    return _result(c.cpf_service.add_cpf(
        current_supplier(), airline_id, data.get('cpf'), data.get('full_name') or '', current_user()
    ))


@api.route('/cpfs/calendar', methods=['GET'])
@agency_required
def cpf_calendar():
    return {
        'ok': True,
        'calendar': container().cpf_service.renewal_calendar(current_supplier(), request.args.get('airline_id')),
    }


@api.route('/cpfs/release-expired', methods=['POST'])
@agency_required
@role_required(*MANAGER_ROLES)
@verify_csrf
def release_expired_cpfs():
    return {'ok': True, 'released': container().cpf_service.release_expired_blocks(current_supplier())}


# ═══════════════════════════════════════════════════════════════════════════════
# FORNECEDORES DE MILHAS
# ═══════════════════════════════════════════════════════════════════════════════

@api.route('/suppliers', methods=['GET'])
@agency_required
def list_suppliers():
    return {'ok': True, 'suppliers': container().supplier_service.list_suppliers(current_supplier())}


@api.route('/suppliers', methods=['POST'])
@agency_required
@verify_csrf
def create_supplier():
    return _result(container().supplier_service.save_supplier(current_supplier(), _payload(), current_user()))


@api.route('/suppliers/<supplier_id>', methods=['PUT'])
@agency_required
@verify_csrf
def update_supplier(supplier_id):
    return _result(container().supplier_service.save_supplier(
        current_supplier(), _payload(), current_user(), supplier_id=supplier_id
    ))


@api.route('/suppliers/<supplier_id>', methods=['DELETE'])
@agency_required
@verify_csrf
def delete_supplier(supplier_id):
    return _result(container().supplier_service.delete_supplier(current_supplier(), supplier_id))


# ═══════════════════════════════════════════════════════════════════════════════
# CONTAS DE MILHAS E MOVIMENTAÇÕES
# ═══════════════════════════════════════════════════════════════════════════════

@api.route('/accounts', methods=['GET'])
@agency_required
def list_accounts():
    return {
        'ok': True,
        'accounts': container().account_service.list_accounts(current_supplier(), request.args.get('status')),
    }


@api.route('/accounts/low-balance', methods=['GET'])
@agency_required
def low_balance_accounts():
    return {'ok': True, 'accounts': container().account_service.low_balance_accounts(current_supplier())}


@api.route('/accounts', methods=['POST'])
@agency_required
@verify_csrf
def create_account():
    return _result(container().account_service.create_account(current_supplier(), _payload(), current_user()))


@api.route('/accounts/<account_id>', methods=['GET'])
@agency_required
def get_account(account_id):
    account = container().account_service.get_account(current_supplier(), account_id)
    if not account:
        return _error('Conta não encontrada', 404)
    return {'ok': True, 'account': account}


@api.route('/accounts/<account_id>', methods=['PUT'])
@agency_required
@verify_csrf
def update_account(account_id):
    return _result(container().account_service.update_account(
        current_supplier(), account_id, _payload(), current_user()
    ))


@api.route('/accounts/<account_id>', methods=['DELETE'])
@agency_required
@verify_csrf
def delete_account(account_id):
    return _result(container().account_service.delete_account(current_supplier(), account_id, current_user()))


@api.route('/accounts/<account_id>/movements', methods=['GET'])
@agency_required
def list_movements(account_id):
    return {
        'ok': True,
        'movements': container().account_service.list_movements(current_supplier(), account_id),
    }


@api.route('/accounts/<account_id>/movements', methods=['POST'])
@agency_required
@verify_csrf
def add_movement(account_id):
    data = _payload()
    return _result(container().account_service.add_movement(
        current_supplier(), account_id, data.get('type'), data.get('amount'), data.get('note') or '', current_user()
    ))


@api.route('/movements/<movement_id>', methods=['DELETE'])
@agency_required
@verify_csrf
def delete_movement(movement_id):
    return _result(container().account_service.delete_movement(current_supplier(), movement_id, current_user()))


# ═══════════════════════════════════════════════════════════════════════════════
# VENDAS E PAGAMENTOS
# ═══════════════════════════════════════════════════════════════════════════════

SALE_FILTERS = ('channel', 'payment_status', 'account_id', 'search', 'date_from', 'date_to')


@api.route('/sales', methods=['GET'])
@agency_required
def list_sales():
    filters = {k: request.args.get(k) for k in SALE_FILTERS if request.args.get(k)}
    return {'ok': True, 'sales': container().sales_service.list_sales(current_supplier(), filters)}


@api.route('/sales', methods=['POST'])
@agency_required
@verify_csrf
def create_sale():
    return _result(container().sales_service.create_sale(_payload(), current_supplier(), current_user()))


@api.route('/sales/<sale_id>', methods=['GET'])
@agency_required
def get_sale(sale_id):
    sale = container().sales_service.get_sale(current_supplier(), sale_id)
    if not sale:
        return _error('Venda não encontrada', 404)
    return {'ok': True, 'sale': sale}


@api.route('/sales/<sale_id>', methods=['PUT'])
@agency_required
@verify_csrf
def update_sale(sale_id):
    return _result(container().sales_service.update_sale(current_supplier(), sale_id, _payload(), current_user()))


@api.route('/sales/<sale_id>', methods=['DELETE'])
@agency_required
@verify_csrf
def delete_sale(sale_id):
    return _result(container().sales_service.delete_sale(current_supplier(), sale_id, current_user()))


@api.route('/sales/bulk-delete', methods=['POST'])
@agency_required
@role_required(*MANAGER_ROLES)
@verify_csrf
def bulk_delete_sales():
    sale_ids = _payload().get('sale_ids') or []
    if not isinstance(sale_ids, list) or not sale_ids:
        return _error('Informe as vendas a excluir')
    return _result(container().sales_service.bulk_delete(current_supplier(), sale_ids, current_user()))


@api.route('/sales/<sale_id>/payments', methods=['GET'])
@agency_required
def list_payments(sale_id):
    return {'ok': True, 'payments': container().payment_service.list_payments(current_supplier(), sale_id)}


@api.route('/sales/<sale_id>/payments', methods=['POST'])
@agency_required
@verify_csrf
def register_payment(sale_id):
    data = _payload()
    return _result(container().payment_service.register_payment(
        current_supplier(), sale_id, data.get('amount'), data.get('payment_method'),
        data.get('payment_date'), data.get('notes') or '', current_user()
    ))


@api.route('/payments/<payment_id>', methods=['DELETE'])
@agency_required
@verify_csrf
def delete_payment(payment_id):
    return _result(container().payment_service.delete_payment(current_supplier(), payment_id, current_user()))


# ═══════════════════════════════════════════════════════════════════════════════
# IMPORTAÇÃO EM MASSA
# ═══════════════════════════════════════════════════════════════════════════════

@api.route('/sales/import/preview', methods=['POST'])
@agency_required
@verify_csrf
def import_preview():
    upload = request.files.get('file')
    if not upload or not upload.filename:
        return _error('Selecione um arquivo .csv ou .xlsx')
    return _result(container().bulk_import_service.process_file(
        current_supplier(), upload.filename, upload.read()
    ))


@api.route('/sales/import', methods=['POST'])
@agency_required
@verify_csrf
def import_sales():
    rows = _payload().get('rows') or []
    return _result(container().bulk_import_service.import_rows(current_supplier(), rows, current_user()))


@api.route('/sales/import/template', methods=['GET'])
@agency_required
def import_template():
    try:
        content, filename, mimetype = generate_template(
            request.args.get('kind', 'simple'), request.args.get('format', 'xlsx')
        )
    except ValueError as e:
        return _error(str(e))
    return Response(content, mimetype=mimetype,
                    headers={'Content-Disposition': f'attachment;filename={filename}'})


# ═══════════════════════════════════════════════════════════════════════════════
# BILHETES
# ═══════════════════════════════════════════════════════════════════════════════

@api.route('/tickets', methods=['GET'])
@agency_required
def list_tickets():
    return {
        'ok': True,
        'tickets': container().ticket_service.list_tickets(
            current_supplier(), request.args.get('sale_id'), request.args.get('status')
        ),
    }


@api.route('/tickets', methods=['POST'])
@agency_required
@verify_csrf
def create_ticket():
    return _result(container().ticket_service.create_ticket(current_supplier(), _payload(), current_user()))


@api.route('/tickets/<ticket_id>', methods=['GET'])
@agency_required
def get_ticket(ticket_id):
    ticket = container().ticket_service.get_ticket(current_supplier(), ticket_id)
    if not ticket:
        return _error('Bilhete não encontrado', 404)
    return {'ok': True, 'ticket': ticket}


@api.route('/tickets/<ticket_id>', methods=['PUT'])
@agency_required
@verify_csrf
def update_ticket(ticket_id):
    return _result(container().ticket_service.update_ticket(
        current_supplier(), ticket_id, _payload(), current_user()
    ))


@api.route('/tickets/<ticket_id>', methods=['DELETE'])
@agency_required
@verify_csrf
def delete_ticket(ticket_id):
    return _result(container().ticket_service.delete_ticket(current_supplier(), ticket_id, current_user()))


@api.route('/tickets/extract', methods=['POST'])
@agency_required
@verify_csrf
def extract_ticket():
    upload = request.files.get('file')
    if not upload or not upload.filename:
        return _error('Envie o PDF ou a imagem do bilhete')
    try:
        extraction = container().ticket_service.extract_ticket_data(upload.filename, upload.read())
    except ValueError as e:
        return _error(str(e))
    return {'ok': True, 'extraction': extraction.to_dict()}


@api.route('/tickets/parse-text', methods=['POST'])
@agency_required
@verify_csrf
def parse_ticket_text():
    text = _payload().get('text') or ''
    if not text.strip():
        return _error("Campo 'text' é obrigatório.")
    return {'ok': True, 'fields': parse_document(text)}


@api.route('/parse-ticket', methods=['POST'])
@login_required
@verify_csrf
def parse_ticket_ai():
    text = _payload().get('text')
    if not isinstance(text, str) or not text.strip():
        return _error("Campo 'text' é obrigatório.")
    try:
        return container().ticket_ai_service.request_fields(text)
    except TicketAIError as e:
        return _error(str(e), 500)


# ═══════════════════════════════════════════════════════════════════════════════
# CLIENTES
# ═══════════════════════════════════════════════════════════════════════════════

@api.route('/customers', methods=['GET'])
@agency_required
def list_customers():
    return {
        'ok': True,
        'customers': container().customer_service.list_customers(current_supplier(), request.args.get('search')),
    }


@api.route('/customers/search', methods=['GET'])
@agency_required
def search_customers():
    return {
        'ok': True,
        'customers': container().customer_service.search_customers(current_supplier(), request.args.get('q')),
    }


@api.route('/customers', methods=['POST'])
@agency_required
@verify_csrf
def save_customer():
    return _result(container().customer_service.save_customer(current_supplier(), _payload(), current_user()))


@api.route('/customers/<customer_id>', methods=['GET'])
@agency_required
def get_customer(customer_id):
    detail = container().customer_service.get_customer_detail(current_supplier(), customer_id)
    if not detail:
        return _error('Cliente não encontrado', 404)
    return dict(detail, ok=True)


@api.route('/customers/<customer_id>', methods=['PUT'])
@agency_required
@verify_csrf
def update_customer(customer_id):
    return _result(container().customer_service.update_customer(
        current_supplier(), customer_id, _payload(), current_user()
    ))


@api.route('/customers/<customer_id>', methods=['DELETE'])
@agency_required
@verify_csrf
def delete_customer(customer_id):
    return _result(container().customer_service.delete_customer(current_supplier(), customer_id, current_user()))


# ═══════════════════════════════════════════════════════════════════════════════
# ORÇAMENTOS
# ═══════════════════════════════════════════════════════════════════════════════

@api.route('/quotes', methods=['GET'])
@agency_required
def list_quotes():
    return {
        'ok': True,
        'quotes': container().quote_service.list_quotes(current_supplier(), request.args.get('status')),
    }


@api.route('/quotes', methods=['POST'])
@agency_required
@verify_csrf
def create_quote():
    return _result(container().quote_service.create_quote(current_supplier(), _payload(), current_user()))


@api.route('/quotes/<quote_id>', methods=['GET'])
@agency_required
def get_quote(quote_id):
    quote = container().quote_service.get_quote(current_supplier(), quote_id)
    if not quote:
        return _error('Orçamento não encontrado', 404)
    return {'ok': True, 'quote': quote}


@api.route('/quotes/<quote_id>', methods=['PUT'])
@agency_required
@verify_csrf
def update_quote(quote_id):
    return _result(container().quote_service.update_quote(current_supplier(), quote_id, _payload(), current_user()))


@api.route('/quotes/<quote_id>', methods=['DELETE'])
@agency_required
@verify_csrf
def delete_quote(quote_id):
    return _result(container().quote_service.delete_quote(current_supplier(), quote_id, current_user()))


@api.route('/quotes/<quote_id>/status', methods=['POST'])
@agency_required
@verify_csrf
def set_quote_status(quote_id):
    return _result(container().quote_service.set_status(
        current_supplier(), quote_id, _payload().get('status'), current_user()
    ))


@api.route('/quotes/<quote_id>/convert', methods=['POST'])
@agency_required
@verify_csrf
def convert_quote(quote_id):
    return _result(container().quote_service.convert_to_sale(
        current_supplier(), quote_id, _payload(), current_user()
    ))


# ═══════════════════════════════════════════════════════════════════════════════
# FORMAS DE PAGAMENTO E JUROS
# ═══════════════════════════════════════════════════════════════════════════════

@api.route('/payment-methods', methods=['GET'])
@agency_required
def list_payment_methods():
    only_active = request.args.get('active') in ('1', 'true')
    return {
        'ok': True,
        'methods': container().payment_method_service.list_methods(current_supplier(), only_active),
    }


@api.route('/payment-methods', methods=['POST'])
@agency_required
@role_required(*MANAGER_ROLES)
@verify_csrf
def create_payment_method():
    return _result(container().payment_method_service.create_method(current_supplier(), _payload()))


@api.route('/payment-methods/<method_id>', methods=['PUT'])
@agency_required
@role_required(*MANAGER_ROLES)
@verify_csrf
def update_payment_method(method_id):
    return _result(container().payment_method_service.update_method(current_supplier(), method_id, _payload()))


@api.route('/payment-methods/<method_id>', methods=['DELETE'])
@agency_required
@role_required(*MANAGER_ROLES)
@verify_csrf
def delete_payment_method(method_id):
    return _result(container().payment_method_service.delete_method(current_supplier(), method_id))


@api.route('/interest-config/<payment_type>', methods=['GET'])
@agency_required
def get_interest_config(payment_type):
    return {
        'ok': True,
        'config': container().payment_method_service.get_interest_config(current_supplier(), payment_type),
    }


@api.route('/interest-config', methods=['PUT'])
@agency_required
@role_required(*MANAGER_ROLES)
@verify_csrf
def save_interest_config():
    return _result(container().payment_method_service.save_interest_config(current_supplier(), _payload()))


# ═══════════════════════════════════════════════════════════════════════════════
# CALCULADORAS
# ═══════════════════════════════════════════════════════════════════════════════

@api.route('/calculator/quote', methods=['POST'])
@agency_required
@verify_csrf
def calculator_quote():
    data = _payload()
    inputs = CalculatorInputs(
        miles=_number(data.get('miles')),
        cost_per_thousand=_number(data.get('cost_per_thousand')),
        boarding_fee=_number(data.get('boarding_fee')),
        passengers=max(1, to_int(data.get('passengers'), 1)),
        target_margin=_number(data.get('target_margin')),
        manual_price=_number(data.get('manual_price')),
    )
    return {'ok': True, 'result': calculate_miles(inputs).to_dict()}


@api.route('/calculator/margin', methods=['POST'])
@agency_required
@verify_csrf
def calculator_margin():
    data = _payload()
    simulation = simulate_margin(
        _number(data.get('miles')),
        _number(data.get('price_per_thousand')),
        _number(data.get('fees')),
        _number(data.get('cost_per_mile'), DEFAULT_COST_PER_MILE),
        _number(data.get('target_margin'), 20.0),
    )
    return {'ok': True, 'result': simulation.to_dict()}


@api.route('/calculator/installments', methods=['POST'])
@agency_required
@verify_csrf
def calculator_installments():
    data = _payload()
    installments = max(1, to_int(data.get('installments'), 1))
    payment_type = data.get('payment_type') or ('credit' if installments > 1 else 'debit')
    config = container().payment_method_service.get_interest_config(current_supplier(), payment_type)
    result = calculate_installments(_number(data.get('total')), installments, config)
    return {'ok': True, 'result': result.to_dict()}


def _number(value, default=0.0):
    if value in (None, ''):
        return default
    return parse_br_number(value)


# ═══════════════════════════════════════════════════════════════════════════════
# RELATÓRIOS E AUDITORIA
# ═══════════════════════════════════════════════════════════════════════════════

@api.route('/reports/financial', methods=['GET'])
@agency_required
def financial_report():
    return {
        'ok': True,
        'kpis': container().report_service.financial_kpis(
            current_supplier(), request.args.get('date_from'), request.args.get('date_to')
        ),
    }


@api.route('/reports/sales', methods=['GET'])
@agency_required
def sales_report():
    period = max(1, to_int(request.args.get('period_days'), 30))
    return {'ok': True, 'kpis': container().report_service.sales_kpis(current_supplier(), period)}


@api.route('/reports/sales/export', methods=['GET'])
@agency_required
@role_required(*MANAGER_ROLES)
def export_sales():
    filters = {k: request.args.get(k) for k in ('date_from', 'date_to', 'payment_status') if request.args.get(k)}
    output = container().report_service.export_sales_csv(current_supplier(), filters)
    return Response(output.encode('utf-8-sig'), mimetype='text/csv',
                    headers={'Content-Disposition': 'attachment;filename=vendas.csv'})


@api.route('/audit', methods=['GET'])
@agency_required
@role_required(*MANAGER_ROLES)
def audit_logs():
    logs = container().audit_service.search_logs(
        current_supplier(),
        log_type=request.args.get('type') or None,
        user=request.args.get('user') or None,
        query=request.args.get('q') or '',
        limit=min(1000, max(1, to_int(request.args.get('limit'), 200))),
    )
    return {'ok': True, 'logs': logs}


@api.route('/backups', methods=['GET'])
@agency_required
@role_required(UserRole.ADMIN.value)
def backup_status():
    return {'ok': True, 'status': BackupService(container().base_path).get_backup_status()}


# ═══════════════════════════════════════════════════════════════════════════════
# ASSINATURA / WEBHOOK DE PAGAMENTOS
# ═══════════════════════════════════════════════════════════════════════════════

@api.route('/webhooks/payments', methods=['POST'])
def payments_webhook():
    payload = request.get_data()
    try:
        verify_signature(payload, request.headers.get('Stripe-Signature'),
                         current_app.config.get('PAYMENT_WEBHOOK_SECRET'))
    except WebhookSignatureError as e:
        logger.warning("[WEBHOOK] Assinatura recusada: %s", e)
        return f'Webhook Error: {e}', 400

    event = request.get_json(silent=True)
    if not isinstance(event, dict):
        return 'Webhook Error: corpo inválido', 400

    outcome = container().billing_service.handle_event(event)
    return {'received': True, 'result': outcome}


def _base_url():
    return request.headers.get('Origin') or request.host_url


@api.route('/billing/checkout', methods=['POST'])
@verify_csrf
def billing_checkout():
    email = _payload().get('email') or current_user()
    return _result(container().billing_service.create_checkout_session(email, _base_url()))


@api.route('/billing/portal', methods=['POST'])
@login_required
@verify_csrf
def billing_portal():
    return _result(container().billing_service.create_portal_session(current_user(), _base_url()))


# ═══════════════════════════════════════════════════════════════════════════════
# FÁBRICA DA APLICAÇÃO
# ═══════════════════════════════════════════════════════════════════════════════

def create_app(config_overrides=None, ai_client=None, payment_client=None):
    """
    Cria a aplicação Flask.

    Args:
        config_overrides: Valores que substituem a configuração do ambiente
        ai_client: Cliente do modelo de linguagem (testes usam um stub)
        payment_client: Cliente da API de pagamentos (testes usam um stub)
    """
    config = load_config(config_overrides)
    setup_logging(config['LOG_LEVEL'])

    app = Flask(__name__)
    app.config.update(config)
    app.secret_key = config['SECRET_KEY']

    if config['PRODUCTION_MODE'] and config['SECRET_KEY'] == DEFAULT_SECRET:
        logger.warning("[CONFIG] PRODUCTION_MODE ativo sem MILHAS_SECRET_KEY definida")

    app.config.update(
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SECURE=bool(config['PRODUCTION_MODE']),
        SESSION_COOKIE_SAMESITE='Lax',
        PERMANENT_SESSION_LIFETIME=86400,
        MAX_CONTENT_LENGTH=10 * 1024 * 1024,
    )

    data_dir = config['DATA_DIR']
    app.extensions['agencia_container'] = AppContainer(
        data_dir, config, ai_client=ai_client, payment_client=payment_client
    )

    init_profiling(app, logs_dir=os.path.join(data_dir, 'logs'), enabled=config['ENABLE_PROFILING'])
    if config['ENABLE_BACKUPS']:
        run_startup_backup(data_dir)

    app.register_blueprint(api)

    @app.after_request
    def set_security_headers(response):
        response.headers['X-Frame-Options'] = 'DENY'
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['Referrer-Policy'] = 'no-referrer-when-downgrade'
        response.headers['Permissions-Policy'] = 'geolocation=(), microphone=()'
        if request.is_secure:
            response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
        return response

    @app.errorhandler(404)
    def not_found(e):
        return _error('Recurso não encontrado', 404)

    @app.errorhandler(405)
    def method_not_allowed(e):
        return _error('Método não permitido', 405)

    @app.errorhandler(413)
    def too_large(e):
        return _error('Arquivo muito grande (máximo 10 MB)', 413)

    @app.errorhandler(500)
    def internal_error(e):
        logger.exception("[ERRO] Falha inesperada em %s %s", request.method, request.path)
        return _error('Erro interno. Tente novamente.', 500)

    logger.info("Aplicação iniciada (dados em %s)", data_dir)
    return app
