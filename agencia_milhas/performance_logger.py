# ==============================================================================
# PROFILING INTERNO
# ==============================================================================
# Mede o tempo das rotas e das funções mais pesadas (importação, leitura de
# bilhetes, criação de vendas) sem afetar o usuário.
# Grava logs legíveis em logs/ para análise humana.
#
# LIGAR/DESLIGAR: variável ENABLE_PROFILING (config.py)
# ==============================================================================

import logging
import os
import threading
import time
from collections import defaultdict
from datetime import datetime
from functools import wraps

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════
# CONFIGURAÇÃO
# ═══════════════════════════════════════════════════════════════════════════

# Limites de tempo (em milissegundos)
THRESHOLD_WARNING = 300
THRESHOLD_CRITICAL = 700

PERFORMANCE_LOG = 'performance.log'
SLOW_ROUTES_LOG = 'slow_routes.log'
SLOW_FUNCTIONS_LOG = 'slow_functions.log'

# Alterado por init_profiling()
_settings = {
    'enabled': True,
    'logs_dir': os.path.join(os.path.dirname(os.path.abspath(__file__)), 'logs'),
}

# Nomes legíveis das rotas (logs mais humanos)
ROUTE_NAMES = {
    # Autenticação
    'POST /api/auth/login': 'Entrar',
    'POST /api/auth/logout': 'Sair',
    'POST /api/auth/register': 'Cadastrar agência',

    # Contas e CPFs
    'GET /api/accounts': 'Listar contas de milhas',
    'POST /api/accounts': 'Criar conta de milhas',
    'POST /api/accounts/<account_id>/movements': 'Movimentar milhas',
    'GET /api/cpfs': 'Ver CPFs do programa',
    'GET /api/cpfs/calendar': 'Ver calendário de renovação',

    # Vendas
    'GET /api/sales': 'Listar vendas',
    'POST /api/sales': 'Registrar venda',
    'DELETE /api/sales/<sale_id>': 'Excluir venda',
    'POST /api/sales/<sale_id>/payments': 'Registrar pagamento',
    'POST /api/sales/import/preview': 'Validar planilha de vendas',
    'POST /api/sales/import': 'Importar vendas',

    # Clientes
    'GET /api/customers': 'Listar clientes',
    'GET /api/customers/<customer_id>': 'Ver cliente e compras',

    # Bilhetes
    'POST /api/tickets/extract': 'Ler bilhete (PDF/OCR)',
    'POST /api/parse-ticket': 'Ler bilhete com IA',

    # Relatórios
    'GET /api/reports/financial': 'Ver relatório financeiro',
    'GET /api/reports/sales': 'Ver painel de vendas',
    'GET /api/reports/sales/export': 'Exportar vendas CSV',

    # Assinaturas
    'POST /api/webhooks/payments': 'Webhook de pagamentos',
    'POST /api/billing/checkout': 'Abrir checkout da assinatura',
    'POST /api/billing/portal': 'Abrir portal do cliente',
}


def is_enabled() -> bool:
    return _settings['enabled']


def _log_path(filename: str) -> str:
    return os.path.join(_settings['logs_dir'], filename)


# ═══════════════════════════════════════════════════════════════════════════
# ESTATÍSTICAS DE FUNÇÕES (em memória)
# ═══════════════════════════════════════════════════════════════════════════

# {nome_funcao: {calls, total_time, max_time}}
_function_stats = defaultdict(lambda: {'calls': 0, 'total_time': 0.0, 'max_time': 0.0})
_stats_lock = threading.Lock()
_write_lock = threading.Lock()


def _get_timestamp():
    return datetime.now().strftime('%Y-%m-%d %H:%M:%S')


def _write_log(filename, content):
    """Acrescenta ao arquivo de log; falhas de disco vão só para o logger."""
    try:
        with _write_lock:
            os.makedirs(_settings['logs_dir'], exist_ok=True)
            with open(_log_path(filename), 'a', encoding='utf-8') as f:
                f.write(content)
    except OSError as e:
        logger.warning("Não foi possível gravar %s: %s", filename, e)


def _get_route_name(method, path, rule=None):
    """Nome legível da rota; usa a regra do Flask para rotas com parâmetros."""
    key = f"{method} {path}"
    if key in ROUTE_NAMES:
        return ROUTE_NAMES[key]
    if rule:
        rule_key = f"{method} {rule}"
        if rule_key in ROUTE_NAMES:
            return ROUTE_NAMES[rule_key]
    return key


# ═══════════════════════════════════════════════════════════════════════════
# 1️⃣ PROFILING DE ROTAS
# ═══════════════════════════════════════════════════════════════════════════

def log_route_performance(method, path, rule, time_ms, user=None):
    if not is_enabled():
        return

    log_entry = f"""
════════════════════════════════════════
[PERFORMANCE] {_get_timestamp()}
────────────────────────────────────────
Ação: {_get_route_name(method, path, rule)}
Usuário: {user or 'anônimo'}
Rota: {method} {path}
Tempo: {time_ms:.0f} ms
"""
    _write_log(PERFORMANCE_LOG, log_entry)


def log_slow_route(method, path, rule, time_ms, user=None, level='WARNING'):
    """
    Registra uma rota lenta em slow_routes.log

    Args:
        level: 'WARNING' (>300ms) ou 'CRITICAL' (>700ms)
    """
    if not is_enabled():
        return

    emoji = '⚠️' if level == 'WARNING' else '🔴'
    severity = 'LENTA' if level == 'WARNING' else 'MUITO LENTA'
    threshold = THRESHOLD_WARNING if level == 'WARNING' else THRESHOLD_CRITICAL

    log_entry = f"""
{emoji} [{level}] {_get_timestamp()}
────────────────────────────────────────
Rota {severity}: {_get_route_name(method, path, rule)}
Usuário: {user or 'anônimo'}
Detalhe: {method} {path}
Tempo: {time_ms:.0f} ms (limite: {threshold} ms)
────────────────────────────────────────
"""
    _write_log(SLOW_ROUTES_LOG, log_entry)
    logger.warning("[PERFORMANCE] %s %s levou %.0f ms", method, path, time_ms)


# ═══════════════════════════════════════════════════════════════════════════
# 2️⃣ HOOKS DO FLASK (before/after request)
# ═══════════════════════════════════════════════════════════════════════════

def init_profiling(app, logs_dir=None, enabled=True):
    """
    Liga o profiling numa app Flask.

    Uso:
        init_profiling(app, logs_dir=os.path.join(data_dir, 'logs'))
    """
    _settings['enabled'] = bool(enabled)
    if logs_dir:
        _settings['logs_dir'] = logs_dir
    if not enabled:
        return

    @app.before_request
    def _start_timer():
        from flask import g
        g.start_time = time.perf_counter()

    @app.after_request
    def _log_request(response):
        from flask import g, request, session

        if not hasattr(g, 'start_time'):
            return response

        elapsed = (time.perf_counter() - g.start_time) * 1000
        method = request.method
        path = request.path
        rule = str(request.url_rule) if request.url_rule else path
        user = session.get('user')

        log_route_performance(method, path, rule, elapsed, user)

        if elapsed >= THRESHOLD_CRITICAL:
            log_slow_route(method, path, rule, elapsed, user, 'CRITICAL')
        elif elapsed >= THRESHOLD_WARNING:
            log_slow_route(method, path, rule, elapsed, user, 'WARNING')

        return response


# ═══════════════════════════════════════════════════════════════════════════
# 3️⃣ DECORADOR PARA FUNÇÕES-CHAVE
# ═══════════════════════════════════════════════════════════════════════════

def profile_function(func=None, name=None):
    """
    Decorador que mede funções críticas.

    Uso:
        @profile_function
        def minha_funcao():
            ...

        @profile_function(name="Importar vendas")
        def import_rows():
            ...
    """
    def decorator(fn):
        func_name = name or fn.__name__

        @wraps(fn)
        def wrapper(*args, **kwargs):
            if not is_enabled():
                return fn(*args, **kwargs)
            start = time.perf_counter()
            try:
                return fn(*args, **kwargs)
            finally:
                elapsed_ms = (time.perf_counter() - start) * 1000
                with _stats_lock:
                    stats = _function_stats[func_name]
                    stats['calls'] += 1
                    stats['total_time'] += elapsed_ms
                    if elapsed_ms > stats['max_time']:
                        stats['max_time'] = elapsed_ms

                if elapsed_ms >= THRESHOLD_WARNING:
                    _log_slow_function_call(func_name, elapsed_ms)

        return wrapper

    # Permite usar sem parênteses: @profile_function
    if func is not None:
        return decorator(func)
    return decorator


def _log_slow_function_call(func_name, time_ms):
    severity = 'CRÍTICO' if time_ms >= THRESHOLD_CRITICAL else 'LENTO'
    emoji = '🔴' if time_ms >= THRESHOLD_CRITICAL else '⚠️'

    log_entry = f"""
{emoji} [{severity}] {_get_timestamp()}
Função: {func_name}
Tempo: {time_ms:.0f} ms
────────────────────────────────────────
"""
    _write_log(SLOW_FUNCTIONS_LOG, log_entry)


# ═══════════════════════════════════════════════════════════════════════════
# 4️⃣ ESTATÍSTICAS
# ═══════════════════════════════════════════════════════════════════════════

def get_function_stats():
    """
    Returns:
        dict: {nome: {calls, avg_time, max_time}}
    """
    with _stats_lock:
        result = {}
        for func_name, stats in _function_stats.items():
            calls = stats['calls']
            avg = stats['total_time'] / calls if calls > 0 else 0
            result[func_name] = {
                'calls': calls,
                'avg_time': round(avg, 2),
                'max_time': round(stats['max_time'], 2)
            }
        return result


def reset_stats():
    with _stats_lock:
        _function_stats.clear()


__all__ = [
    'init_profiling',
    'profile_function',
    'get_function_stats',
    'reset_stats',
    'is_enabled',
]
