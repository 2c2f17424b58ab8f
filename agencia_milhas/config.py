# ==============================================================================
# CONFIGURAÇÃO CENTRAL
# ==============================================================================
# Lê variáveis de ambiente (opcionalmente de um arquivo .env na raiz do
# projeto) e monta o dicionário de configuração usado por create_app().
#
# VARIÁVEIS SUPORTADAS:
#   MILHAS_SECRET_KEY        Chave de sessão do Flask (obrigatória em produção)
#   MILHAS_DATA_DIR          Pasta dos arquivos JSON de dados
#   MILHAS_PRODUCTION_MODE   "true"/"false"
#   ANTHROPIC_API_KEY        Chave do modelo usado na leitura de bilhetes
#   TICKET_AI_MODEL          Modelo de linguagem para leitura de bilhetes
#   PAYMENT_WEBHOOK_SECRET   Segredo de assinatura do webhook de pagamentos
#   STRIPE_SECRET_KEY        Chave da API de pagamentos (checkout, portal)
#   ALWAYS_ACTIVE_EMAILS     E-mails liberados sem assinatura (separados por vírgula)
#   MAX_IMPORT_ROWS          Limite de linhas por importação em massa
#   ENABLE_PROFILING         Liga/desliga os logs de desempenho
#   LOG_LEVEL                Nível do logger (INFO, DEBUG, ...)
# ==============================================================================

import os
from pathlib import Path
from typing import Any, Dict, List

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent
ENV_PATH = BASE_DIR.parent / ".env"

# O .env é opcional: em produção as variáveis vêm do ambiente
if ENV_PATH.exists():
    load_dotenv(ENV_PATH)

DEFAULT_SECRET = "agencia_milhas_dev_secret_change_in_production"
DEFAULT_AI_MODEL = "claude-3-5-haiku-latest"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == '':
        return default
    return raw.strip().lower() in ('1', 'true', 'yes', 'on', 'sim')


def parse_email_list(raw: str) -> List[str]:
    """Converte "a@x.com, B@y.com" em ['a@x.com', 'b@y.com']."""
    return [e.strip().lower() for e in (raw or '').split(',') if e.strip()]


def load_config(overrides: Dict[str, Any] = None) -> Dict[str, Any]:
    """
    Monta a configuração da aplicação a partir do ambiente.

    Args:
        overrides: Valores que substituem os do ambiente (usado nos testes)

    Returns:
        Dicionário pronto para app.config.update()
    """
    config = {
        'SECRET_KEY': os.getenv('MILHAS_SECRET_KEY') or DEFAULT_SECRET,
        'DATA_DIR': os.getenv('MILHAS_DATA_DIR') or str(BASE_DIR / 'data'),
        'PRODUCTION_MODE': _env_bool('MILHAS_PRODUCTION_MODE', False),
        'ANTHROPIC_API_KEY': os.getenv('ANTHROPIC_API_KEY', ''),
        'TICKET_AI_MODEL': os.getenv('TICKET_AI_MODEL') or DEFAULT_AI_MODEL,
        'PAYMENT_WEBHOOK_SECRET': os.getenv('PAYMENT_WEBHOOK_SECRET', ''),
        'STRIPE_SECRET_KEY': os.getenv('STRIPE_SECRET_KEY', ''),
        'ALWAYS_ACTIVE_EMAILS': parse_email_list(os.getenv('ALWAYS_ACTIVE_EMAILS', '')),
        'MAX_IMPORT_ROWS': int(os.getenv('MAX_IMPORT_ROWS', '500')),
        'ENABLE_PROFILING': _env_bool('ENABLE_PROFILING', True),
        'ENABLE_BACKUPS': _env_bool('ENABLE_BACKUPS', True),
        'LOG_LEVEL': os.getenv('LOG_LEVEL', 'INFO').upper(),
    }
    if overrides:
        config.update(overrides)
    if isinstance(config['ALWAYS_ACTIVE_EMAILS'], str):
        config['ALWAYS_ACTIVE_EMAILS'] = parse_email_list(config['ALWAYS_ACTIVE_EMAILS'])
    return config
