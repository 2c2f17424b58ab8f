# ==============================================================================
# FUNÇÕES AUXILIARES - Formatos brasileiros
# ==============================================================================
# Números "1.850,50", datas DD/MM/AAAA, CPF, telefone e moeda.
# Funções puras: sem acesso a repositórios nem ao Flask.
# ==============================================================================

import re
from datetime import date, datetime, timedelta
from typing import Any, Optional, Union

_BR_DATE_RE = re.compile(r'^(\d{2})/(\d{2})/(\d{4})$')
_ISO_DATE_RE = re.compile(r'^(\d{4})-(\d{2})-(\d{2})$')
_DOT_DECIMAL_RE = re.compile(r'^-?\d+\.\d{1,2}$')

# Excel conta dias a partir de 1899-12-30 (herança do bug de 1900)
EXCEL_EPOCH = date(1899, 12, 30)
EXCEL_SERIAL_MIN = 30000
EXCEL_SERIAL_MAX = 60000

MIN_YEAR = 2000
MAX_YEAR = 2100

DateInput = Union[str, int, float, date, datetime, None]


# ═══════════════════════════════════════════════════════════════════════════════
# NÚMEROS
# ═══════════════════════════════════════════════════════════════════════════════

def parse_br_number(value: Any) -> float:
    """
    Converte número em formato brasileiro para float.

    Exemplos:
        "1.850,50"  -> 1850.5
        "25.000"    -> 25000.0
        "R$ 99,90"  -> 99.9
        ""          -> 0.0
        "abc"       -> 0.0
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)

    raw = str(value).strip().replace('R$', '').replace(' ', '')
    if not raw:
        return 0.0

    # "1850.50" vindo de exportações com ponto decimal
    if ',' not in raw and _DOT_DECIMAL_RE.match(raw):
        normalized = raw
    else:
        normalized = raw.replace('.', '').replace(',', '.', 1)

    try:
        return float(normalized)
    except ValueError:
        return 0.0


def is_number(value: Any) -> bool:
    """True se o valor é vazio ou pode ser lido como número brasileiro."""
    if value is None or value == '':
        return True
    if isinstance(value, (int, float)):
        return True
    raw = str(value).strip().replace('R$', '').replace(' ', '')
    return bool(re.match(r'^-?[\d.]*,?\d*$', raw)) and any(c.isdigit() for c in raw)


def only_digits(value: Any) -> str:
    return re.sub(r'\D', '', str(value or ''))


# ═══════════════════════════════════════════════════════════════════════════════
# DATAS
# ═══════════════════════════════════════════════════════════════════════════════

def _checked_date(year: int, month: int, day: int) -> Optional[date]:
    if year < MIN_YEAR or year > MAX_YEAR:
        return None
    try:
        return date(year, month, day)
    except ValueError:
        # 31/02, 30/02 etc.
        return None


def parse_br_date(value: DateInput) -> Optional[date]:
    """
    Converte os formatos de data usados em planilhas para date.

    Aceita:
        - "DD/MM/AAAA" e "DD/MM/AAAA HH:MM[:SS]"
        - "AAAA-MM-DD" e ISO com horário ("2025-11-21T00:00:00Z")
        - número serial do Excel (ex.: 45876)
        - date / datetime

    Returns:
        date ou None se o valor não for uma data válida
    """
    if value is None or value == '' or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    raw = str(value).strip()
    if not raw:
        return None

    first_part = raw.split(' ')[0]

    match = _BR_DATE_RE.match(first_part)
    if match:
        day, month, year = (int(g) for g in match.groups())
        return _checked_date(year, month, day)

    match = _ISO_DATE_RE.match(first_part)
    if match:
        year, month, day = (int(g) for g in match.groups())
        return _checked_date(year, month, day)

    try:
        serial = float(raw)
    except ValueError:
        serial = None
    if serial is not None:
        if EXCEL_SERIAL_MIN < serial < EXCEL_SERIAL_MAX:
            return EXCEL_EPOCH + timedelta(days=int(serial))
        return None

    # Último recurso: ISO completo
    try:
        parsed = datetime.fromisoformat(raw.replace('Z', '+00:00'))
    except ValueError:
        return None
    return _checked_date(parsed.year, parsed.month, parsed.day)


def is_valid_br_date(value: DateInput) -> bool:
    return parse_br_date(value) is not None


def format_date_iso(value: date) -> str:
    """date -> 'AAAA-MM-DD'."""
    return value.strftime('%Y-%m-%d')


def format_date_br(value: DateInput) -> str:
    """Qualquer data reconhecida -> 'DD/MM/AAAA' (ou '' se inválida)."""
    parsed = parse_br_date(value)
    return parsed.strftime('%d/%m/%Y') if parsed else ''


def add_one_year(value: date) -> date:
    """Mesma data no ano seguinte; 29/02 vira 28/02."""
    try:
        return value.replace(year=value.year + 1)
    except ValueError:
        return value.replace(year=value.year + 1, day=28)


# ═══════════════════════════════════════════════════════════════════════════════
# CPF E TELEFONE
# ═══════════════════════════════════════════════════════════════════════════════

def validate_cpf(cpf: Any) -> bool:
    """
    Valida os dígitos verificadores do CPF (módulo 11).
    CPFs com todos os dígitos iguais são rejeitados.
    """
    numbers = only_digits(cpf)
    if len(numbers) != 11:
        return False
    if numbers == numbers[0] * 11:
        return False

    for size in (9, 10):
        total = sum(int(numbers[i]) * (size + 1 - i) for i in range(size))
        check = (total * 10) % 11
        if check == 10:
            check = 0
        if check != int(numbers[size]):
            return False
    return True


def mask_cpf(value: Any) -> str:
    """'52998224725' -> '529.982.247-25' (aceita entrada parcial)."""
    numbers = only_digits(value)[:11]
    if len(numbers) <= 3:
        return numbers
    if len(numbers) <= 6:
        return f"{numbers[:3]}.{numbers[3:]}"
    if len(numbers) <= 9:
        return f"{numbers[:3]}.{numbers[3:6]}.{numbers[6:]}"
    return f"{numbers[:3]}.{numbers[3:6]}.{numbers[6:9]}-{numbers[9:]}"


def hide_cpf(value: Any) -> str:
    """Mostra só os dois últimos dígitos: '***.***.***-25'."""
    numbers = only_digits(value)
    if len(numbers) < 2:
        return '***.***.***-**'
    return f"***.***.***-{numbers[-2:]}"


def mask_phone(value: Any) -> str:
    """
    Formata telefone brasileiro.
        10 dígitos -> (11) 3456-7890
        11 dígitos -> (11) 98765-4321
    """
    numbers = only_digits(value)[:11]
    if len(numbers) <= 2:
        return numbers
    ddd, rest = numbers[:2], numbers[2:]
    split_at = 4 if len(numbers) <= 10 else 5
    if len(rest) <= split_at:
        return f"({ddd}) {rest}"
    return f"({ddd}) {rest[:split_at]}-{rest[split_at:]}"


# ═══════════════════════════════════════════════════════════════════════════════
# MOEDA E MILHAS
# ═══════════════════════════════════════════════════════════════════════════════

def format_brl(amount: Any) -> str:
    """1234.5 -> 'R$ 1.234,50'."""
    value = float(amount or 0)
    sign = '-' if value < 0 else ''
    text = f"{abs(value):,.2f}".replace(',', '_').replace('.', ',').replace('_', '.')
    return f"{sign}R$ {text}"


def unmask_currency(value: Any) -> float:
    """'R$ 1.234,56' -> 1234.56 (centavos pelos dígitos)."""
    numbers = only_digits(value)
    return int(numbers) / 100 if numbers else 0.0


def format_miles(miles: Any) -> str:
    """25000 -> '25.000'."""
    return f"{int(round(float(miles or 0))):,}".replace(',', '.')


def to_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def to_int(value: Any, default: int = 0) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default
