# ==============================================================================
# IMPORTAÇÃO EM MASSA DE VENDAS (CSV / XLSX)
# ==============================================================================
# Fluxo:
#   1. parse_sales_file  -> lê o arquivo e normaliza cada linha
#   2. validate_row      -> erros, avisos e dados resolvidos (programa, conta)
#   3. import_rows       -> cria as vendas uma a uma, na ordem da planilha
#
# PLANILHAS:
#   simples  -> tem quantidade_milhas + custo_milheiro (faturamento)
#   completa -> trechos de ida/volta, conta e dados de balcão
# ==============================================================================

import csv
import io
import logging
from datetime import date
from typing import Any, Dict, List, Tuple

from openpyxl import Workbook, load_workbook
from openpyxl.utils import get_column_letter

from agencia_milhas.helpers import (
    format_date_br,
    format_date_iso,
    is_number,
    is_valid_br_date,
    only_digits,
    parse_br_date,
    parse_br_number,
    validate_cpf,
)
from agencia_milhas.models import (
    IMPORT_PAYMENT_METHODS,
    AccountStatus,
    FlightSegment,
    SaleChannel,
    SaleForm,
    TripType,
    ValidationResult,
)
from agencia_milhas.performance_logger import profile_function
from agencia_milhas.repositories import AccountRepository, AirlineRepository, SalesRepository
from agencia_milhas.services.airline_service import AirlineService
from agencia_milhas.services.audit_service import AuditService
from agencia_milhas.services.sales_service import SalesService

logger = logging.getLogger(__name__)

MAX_IMPORT_ROWS = 500
INSTRUCTION_MARK = 'OBRIGATÓRIO'
DEFAULT_COUNTER_SELLER = 'Vendedor Externo'

SIMPLE_COLUMNS = (
    'data_venda', 'nome_cliente', 'quantidade_milhas', 'custo_milheiro',
    'taxa_embarque_total', 'valor_total', 'forma_pagamento', 'status_pagamento',
    'programa_milhas', 'localizador', 'observacoes',
)

FULL_COLUMNS = (
    'data_venda', 'nome_cliente', 'cpf_cliente', 'telefone_cliente',
    'programa_milhas', 'numero_conta', 'tipo_viagem', 'origem', 'destino',
    'data_ida', 'data_volta', 'milhas_ida', 'milhas_volta', 'numero_passageiros',
    'taxa_embarque_total', 'valor_total', 'forma_pagamento', 'status_pagamento',
    'localizador', 'observacoes', 'custo_mil_milhas_balcao', 'vendedor_balcao',
    'contato_vendedor_balcao',
)

REQUIRED_SIMPLE = {
    'data_venda': 'Data da venda é obrigatória',
    'nome_cliente': 'Nome do cliente é obrigatório',
    'quantidade_milhas': 'Quantidade de milhas é obrigatória',
    'custo_milheiro': 'Custo do milheiro é obrigatório',
    'valor_total': 'Valor total é obrigatório',
    'forma_pagamento': 'Forma de pagamento é obrigatória',
    'status_pagamento': 'Status do pagamento é obrigatório',
}

REQUIRED_FULL = {
    'data_venda': 'Data da venda é obrigatória',
    'nome_cliente': 'Nome do cliente é obrigatório',
    'cpf_cliente': 'CPF do cliente é obrigatório',
    'programa_milhas': 'Programa de milhas é obrigatório',
    'tipo_viagem': 'Tipo de viagem é obrigatório',
    'origem': 'Origem é obrigatória',
    'destino': 'Destino é obrigatório',
    'data_ida': 'Data de ida é obrigatória',
    'milhas_ida': 'Milhas de ida é obrigatório',
    'numero_passageiros': 'Número de passageiros é obrigatório',
    'taxa_embarque_total': 'Taxa de embarque é obrigatória',
    'valor_total': 'Valor total é obrigatório',
    'forma_pagamento': 'Forma de pagamento é obrigatória',
}

# campo -> rótulo usado em "<rótulo> deve ser um número"
NUMERIC_LABELS = {
    'quantidade_milhas': 'Quantidade de milhas',
    'custo_milheiro': 'Custo do milheiro',
    'milhas_ida': 'Milhas de ida',
    'milhas_volta': 'Milhas de volta',
    'numero_passageiros': 'Número de passageiros',
    'taxa_embarque_total': 'Taxa de embarque',
    'valor_total': 'Valor total',
}

DATE_LABELS = (
    ('data_venda', 'Data da venda'),
    ('data_ida', 'Data de ida'),
    ('data_volta', 'Data de volta'),
)

TEMPLATE_FILES = {
    'simple': 'modelo-importacao-faturamento',
    'full': 'modelo-importacao-completa',
}


# ═══════════════════════════════════════════════════════════════════════════════
# LEITURA E NORMALIZAÇÃO
# ═══════════════════════════════════════════════════════════════════════════════

def _text(value: Any) -> str:
    if value is None:
        return ''
    return str(value).strip()


def normalize_date_cell(value: Any) -> str:
    """Data de planilha -> 'DD/MM/AAAA'; valores irreconhecíveis voltam como texto."""
    if value is None or value == '':
        return ''
    formatted = format_date_br(value)
    return formatted or _text(value)


def normalize_number_cell(value: Any) -> str:
    """
    Número de planilha -> texto com ponto decimal ("25.000" -> "25000",
    "1.850,50" -> "1850.5"). Texto que não é número volta como está
    para a validação apontar o erro.
    """
    raw = _text(value)
    if not raw:
        return ''
    if not is_number(value):
        return raw
    number = parse_br_number(value)
    return format(number, '.2f').rstrip('0').rstrip('.') or '0'


def is_simple_template(row: Dict[str, Any]) -> bool:
    return 'quantidade_milhas' in row and 'custo_milheiro' in row and 'origem' not in row


def normalize_row(row: Dict[str, Any]) -> Dict[str, str]:
    """
    Converte uma linha crua para o esquema fixo de colunas.

    Planilha simples recebe os campos da completa com valores padrão
    (one_way, 1 passageiro). Na completa, quantidade_milhas vira
    ida + volta quando não informada.
    """
    if is_simple_template(row):
        data = {key: '' for key in FULL_COLUMNS}
        data.update({
            'data_venda': normalize_date_cell(row.get('data_venda')),
            'nome_cliente': _text(row.get('nome_cliente')),
            'quantidade_milhas': normalize_number_cell(row.get('quantidade_milhas')),
            'custo_milheiro': normalize_number_cell(row.get('custo_milheiro')),
            'taxa_embarque_total': normalize_number_cell(row.get('taxa_embarque_total')),
            'valor_total': normalize_number_cell(row.get('valor_total')),
            'forma_pagamento': _text(row.get('forma_pagamento')).lower(),
            'status_pagamento': _text(row.get('status_pagamento')).lower(),
            'programa_milhas': _text(row.get('programa_milhas')).upper(),
            'localizador': _text(row.get('localizador')).upper(),
            'observacoes': _text(row.get('observacoes')),
            'tipo_viagem': TripType.ONE_WAY.value,
            'numero_passageiros': '1',
        })
        data['template'] = 'simple'
        return data

    data = {
        'data_venda': normalize_date_cell(row.get('data_venda')),
        'nome_cliente': _text(row.get('nome_cliente')),
        'cpf_cliente': _text(row.get('cpf_cliente')),
        'telefone_cliente': _text(row.get('telefone_cliente')),
        'programa_milhas': _text(row.get('programa_milhas')).upper(),
        'numero_conta': _text(row.get('numero_conta')),
        'tipo_viagem': _text(row.get('tipo_viagem')).lower(),
        'origem': _text(row.get('origem')).upper(),
        'destino': _text(row.get('destino')).upper(),
        'data_ida': normalize_date_cell(row.get('data_ida')),
        'data_volta': normalize_date_cell(row.get('data_volta')),
        'milhas_ida': normalize_number_cell(row.get('milhas_ida')),
        'milhas_volta': normalize_number_cell(row.get('milhas_volta')),
        'numero_passageiros': normalize_number_cell(row.get('numero_passageiros')),
        'taxa_embarque_total': normalize_number_cell(row.get('taxa_embarque_total')),
        'valor_total': normalize_number_cell(row.get('valor_total')),
        'forma_pagamento': _text(row.get('forma_pagamento')).lower(),
        'status_pagamento': _text(row.get('status_pagamento')).lower(),
        'localizador': _text(row.get('localizador')).upper(),
        'observacoes': _text(row.get('observacoes')),
        'custo_mil_milhas_balcao': normalize_number_cell(row.get('custo_mil_milhas_balcao')),
        'vendedor_balcao': _text(row.get('vendedor_balcao')),
        'contato_vendedor_balcao': _text(row.get('contato_vendedor_balcao')),
        'template': 'full',
    }

    miles = normalize_number_cell(row.get('quantidade_milhas'))
    if not miles and (data['milhas_ida'] or data['milhas_volta']):
        miles = normalize_number_cell(parse_br_number(data['milhas_ida']) + parse_br_number(data['milhas_volta']))
    data['quantidade_milhas'] = miles

    cost = normalize_number_cell(row.get('custo_milheiro'))
    data['custo_milheiro'] = cost or data['custo_mil_milhas_balcao']
    return data


def _is_blank(row: Dict[str, Any]) -> bool:
    return all(_text(v) == '' for v in row.values())


def _is_instruction(row: Dict[str, Any]) -> bool:
    return _text(row.get('data_venda')).upper() == INSTRUCTION_MARK


def _read_csv(content: bytes) -> List[Dict[str, Any]]:
    text = content.decode('utf-8-sig', errors='replace')
    first_line = text.split('\n', 1)[0]
    delimiter = ';' if first_line.count(';') >= first_line.count(',') else ','
    reader = csv.DictReader(io.StringIO(text), delimiter=delimiter)
    rows = []
    for raw in reader:
        row = {_text(k): v for k, v in raw.items() if k is not None}
        rows.append(row)
    return rows


def _read_xlsx(content: bytes) -> List[Dict[str, Any]]:
    workbook = load_workbook(io.BytesIO(content), data_only=True, read_only=True)
    try:
        sheet = workbook.worksheets[0]
        values = list(sheet.iter_rows(values_only=True))
    finally:
        workbook.close()
    if not values:
        return []
    header = [_text(h) for h in values[0]]
    rows = []
    for line in values[1:]:
        row = {}
        for index, key in enumerate(header):
            if key:
                row[key] = line[index] if index < len(line) else None
        rows.append(row)
    return rows


@profile_function(name="Ler planilha de vendas")
def parse_sales_file(filename: str, content: bytes) -> Dict[str, Any]:
    """
    Lê um arquivo .csv ou .xlsx de vendas.

    A linha de instruções (data_venda = 'OBRIGATÓRIO') e linhas vazias são
    descartadas. row_number segue a numeração da planilha: no CSV a primeira
    linha de dados é a 2; no XLSX é a 3 (cabeçalho + instruções).

    Returns:
        {'success', 'rows': [{'row_number', 'data', 'raw'}], 'total_rows', 'errors'}
    """
    extension = (filename or '').rsplit('.', 1)[-1].lower() if '.' in (filename or '') else ''
    if extension == 'csv':
        reader, offset = _read_csv, 2
    elif extension in ('xlsx', 'xls'):
        reader, offset = _read_xlsx, 3
    else:
        return {
            'success': False, 'rows': [], 'total_rows': 0,
            'errors': [{'row': 0, 'message': 'Formato de arquivo não suportado. Use .csv ou .xlsx'}],
        }

    try:
        raw_rows = reader(content)
    except Exception as e:
        logger.warning("[IMPORTAÇÃO] Falha ao ler %s: %s", filename, e)
        return {'success': False, 'rows': [], 'total_rows': 0, 'errors': [{'row': 0, 'message': str(e)}]}

    filtered = [r for r in raw_rows if not _is_blank(r) and not _is_instruction(r)]
    rows = [
        {'row_number': index + offset, 'data': normalize_row(raw), 'raw': {k: _text(v) for k, v in raw.items()}}
        for index, raw in enumerate(filtered)
    ]
    return {'success': True, 'rows': rows, 'total_rows': len(rows), 'errors': []}


# ═══════════════════════════════════════════════════════════════════════════════
# CONVERSÃO LINHA -> VENDA
# ═══════════════════════════════════════════════════════════════════════════════

def _iso_or_raw(value: str) -> str:
    parsed = parse_br_date(value)
    return format_date_iso(parsed) if parsed else value


def has_route_info(data: Dict[str, str]) -> bool:
    return any(data.get(k) for k in ('origem', 'destino', 'data_ida', 'data_volta', 'milhas_ida', 'milhas_volta'))


def convert_row_to_sale_form(data: Dict[str, str], validation: ValidationResult) -> SaleForm:
    """
    Monta o SaleForm de uma linha validada.

    - Simples (milhas + milheiro, sem rota): canal legacy
    - Com dados de balcão: canal counter
    - Demais: canal internal com a conta resolvida
    """
    sale_date = _iso_or_raw(data.get('data_venda', '')) or None
    common = dict(
        customer_name=data.get('nome_cliente', ''),
        price_total=parse_br_number(data.get('valor_total')),
        boarding_fee=parse_br_number(data.get('taxa_embarque_total')),
        payment_method=data.get('forma_pagamento', ''),
        payment_status=data.get('status_pagamento') or 'pending',
        sale_date=sale_date,
        notes=data.get('observacoes', ''),
        airline_program=data.get('programa_milhas', ''),
        locator=data.get('localizador', ''),
    )

    if data.get('quantidade_milhas') and data.get('custo_milheiro') and not has_route_info(data):
        return SaleForm(
            channel=SaleChannel.LEGACY.value,
            total_miles=parse_br_number(data['quantidade_milhas']),
            cost_per_thousand=parse_br_number(data['custo_milheiro']),
            **common
        )

    segments = []
    if data.get('origem') and data.get('destino') and data.get('data_ida') and data.get('milhas_ida'):
        segments.append(FlightSegment(
            from_code=data['origem'], to_code=data['destino'],
            date=_iso_or_raw(data['data_ida']), miles=parse_br_number(data['milhas_ida']),
        ))
    if (data.get('tipo_viagem') == TripType.ROUND_TRIP.value and data.get('origem') and data.get('destino')
            and data.get('data_volta') and data.get('milhas_volta')):
        segments.append(FlightSegment(
            from_code=data['destino'], to_code=data['origem'],
            date=_iso_or_raw(data['data_volta']), miles=parse_br_number(data['milhas_volta']),
        ))

    passengers = int(parse_br_number(data.get('numero_passageiros'))) or 1
    common.update(
        customer_cpf=only_digits(data.get('cpf_cliente')),
        customer_phone=data.get('telefone_cliente', ''),
        passengers=passengers,
        trip_type=data.get('tipo_viagem') or TripType.ONE_WAY.value,
        flight_segments=segments,
    )

    if validation.is_counter or data.get('custo_mil_milhas_balcao') or data.get('vendedor_balcao'):
        return SaleForm(
            channel=SaleChannel.COUNTER.value,
            seller_name=data.get('vendedor_balcao') or DEFAULT_COUNTER_SELLER,
            # Contato é obrigatório no balcão; planilhas antigas não trazem
            seller_contact=data.get('contato_vendedor_balcao') or 'Não informado',
            counter_cost_per_thousand=parse_br_number(data.get('custo_mil_milhas_balcao')),
            counter_airline_program=data.get('programa_milhas', ''),
            **common
        )

    return SaleForm(
        channel=SaleChannel.INTERNAL.value,
        account_id=validation.mileage_account_id or '',
        program_id=validation.airline_company_id or '',
        **common
    )


# ═══════════════════════════════════════════════════════════════════════════════
# MODELOS DE PLANILHA
# ═══════════════════════════════════════════════════════════════════════════════

def _template_rows(kind: str, today: date) -> Tuple[Tuple[str, ...], Dict[str, str], Dict[str, str]]:
    sale_date = today.strftime('%d/%m/%Y')
    if kind == 'simple':
        columns, required = SIMPLE_COLUMNS, REQUIRED_SIMPLE
        example = {
            'data_venda': sale_date, 'nome_cliente': 'João da Silva',
            'quantidade_milhas': '25.000', 'custo_milheiro': '18,50',
            'taxa_embarque_total': '320,00', 'valor_total': '1.850,00',
            'forma_pagamento': 'pix', 'status_pagamento': 'paid',
            'programa_milhas': 'LATAM', 'localizador': 'ABC123',
            'observacoes': 'Cliente preferencial',
        }
    else:
        columns, required = FULL_COLUMNS, REQUIRED_FULL
        example = {
            'data_venda': sale_date, 'nome_cliente': 'João da Silva',
            'cpf_cliente': '529.982.247-25', 'telefone_cliente': '(11) 98765-4321',
            'programa_milhas': 'LATAM', 'numero_conta': '123456789',
            'tipo_viagem': 'round_trip', 'origem': 'GRU', 'destino': 'GIG',
            'data_ida': sale_date, 'data_volta': sale_date,
            'milhas_ida': '12.500', 'milhas_volta': '12.500',
            'numero_passageiros': '2', 'taxa_embarque_total': '320,00',
            'valor_total': '1.850,00', 'forma_pagamento': 'pix',
            'status_pagamento': 'paid', 'localizador': 'ABC123',
            'observacoes': 'Cliente preferencial',
        }
    instructions = {c: (INSTRUCTION_MARK if c in required else 'Opcional') for c in columns}
    return columns, instructions, example


def generate_template(kind: str = 'simple', fmt: str = 'xlsx', today: date = None) -> Tuple[bytes, str, str]:
    """
    Gera o modelo de planilha (cabeçalho, linha de instruções e exemplo).

    Args:
        kind: 'simple' ou 'full'
        fmt: 'xlsx' ou 'csv'

    Returns:
        (conteúdo, nome do arquivo, mimetype)
    """
    if kind not in TEMPLATE_FILES:
        raise ValueError("Modelo inválido. Use: simple ou full")
    if fmt not in ('xlsx', 'csv'):
        raise ValueError("Formato inválido. Use: xlsx ou csv")

    columns, instructions, example = _template_rows(kind, today or date.today())
    filename = f"{TEMPLATE_FILES[kind]}.{fmt}"

    if fmt == 'csv':
        output = io.StringIO()
        writer = csv.writer(output, delimiter=';')
        writer.writerow(columns)
        writer.writerow([instructions[c] for c in columns])
        writer.writerow([example.get(c, '') for c in columns])
        return output.getvalue().encode('utf-8-sig'), filename, 'text/csv'

    workbook = Workbook()
    sheet = workbook.active
    sheet.title = 'Vendas'
    sheet.append(list(columns))
    sheet.append([instructions[c] for c in columns])
    sheet.append([example.get(c) or None for c in columns])
    for index, column in enumerate(columns, start=1):
        sheet.column_dimensions[get_column_letter(index)].width = max(12, len(column) + 4)

    buffer = io.BytesIO()
    workbook.save(buffer)
    return (
        buffer.getvalue(),
        filename,
        'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
    )


# ═══════════════════════════════════════════════════════════════════════════════
# SERVIÇO
# ═══════════════════════════════════════════════════════════════════════════════

class BulkImportService:
    """
    Responsabilidades:
    - Validar linhas contra programas e contas da agência
    - Importar as linhas válidas em sequência
    - Cadastrar automaticamente programas desconhecidos
    """

    def __init__(
        self,
        sales_service: SalesService,
        airline_service: AirlineService,
        airline_repo: AirlineRepository,
        account_repo: AccountRepository,
        sales_repo: SalesRepository,
        audit_service: AuditService = None,
        max_rows: int = MAX_IMPORT_ROWS
    ):
        self.sales_service = sales_service
        self.airline_service = airline_service
        self.airline_repo = airline_repo
        self.account_repo = account_repo
        self.sales_repo = sales_repo
        self.audit_service = audit_service
        self.max_rows = max_rows

    # =========================================================================
    # VALIDAÇÃO
    # =========================================================================

    def _check_required(self, data: Dict[str, str], required: Dict[str, str], result: ValidationResult) -> None:
        for key, message in required.items():
            if not data.get(key):
                result.errors.append(message)

    def _resolve_account(
        self,
        data: Dict[str, str],
        accounts: List[Dict[str, Any]],
        result: ValidationResult
    ) -> None:
        if not result.airline_company_id:
            return
        active = [
            a for a in accounts
            if a.get('airline_company_id') == result.airline_company_id
            and a.get('status') == AccountStatus.ACTIVE.value
        ]
        number = data.get('numero_conta')
        if number:
            account = next((a for a in active if a.get('account_number') == number), None)
            if account:
                result.mileage_account_id = account['id']
                result.account_number = account['account_number']
            else:
                result.warnings.append(f'Conta "{number}" não encontrada ou inativa')
        elif active:
            result.mileage_account_id = active[0]['id']
            result.account_number = active[0].get('account_number')
            result.warnings.append(f'Conta "{result.account_number}" selecionada automaticamente')
        else:
            result.errors.append('Nenhuma conta ativa disponível para este programa')

    def _check_duplicate(self, data: Dict[str, str], supplier_id: str, result: ValidationResult) -> None:
        if not (data.get('localizador') and is_valid_br_date(data.get('data_venda'))):
            return
        try:
            duplicate = self.sales_repo.route_contains(supplier_id, data['localizador'])
        except (OSError, ValueError) as e:
            logger.warning("[IMPORTAÇÃO] Verificação de duplicidade falhou: %s", e)
            return
        if duplicate:
            result.warnings.append('⚠️ Possível duplicata (localizador já existe)')
            result.is_duplicate = True

    def validate_row(
        self,
        data: Dict[str, str],
        airlines: List[Dict[str, Any]],
        accounts: List[Dict[str, Any]],
        supplier_id: str
    ) -> ValidationResult:
        """
        Valida uma linha normalizada.

        Erros impedem a importação; avisos são apenas informativos.
        """
        result = ValidationResult()
        simple = data.get('template') == 'simple'

        self._check_required(data, REQUIRED_SIMPLE if simple else REQUIRED_FULL, result)

        trip_type = data.get('tipo_viagem')
        if not simple:
            if trip_type and trip_type not in (TripType.ONE_WAY.value, TripType.ROUND_TRIP.value):
                result.errors.append('Tipo de viagem inválido. Use: one_way ou round_trip')
            if trip_type == TripType.ROUND_TRIP.value:
                if not data.get('data_volta'):
                    result.errors.append('Data de volta é obrigatória para viagem round_trip')
                if not data.get('milhas_volta'):
                    result.errors.append('Milhas de volta são obrigatórias para viagem round_trip')

        for key, label in NUMERIC_LABELS.items():
            if data.get(key) and not is_number(data[key]):
                result.errors.append(f'{label} deve ser um número')

        cpf = only_digits(data.get('cpf_cliente'))
        if cpf and not validate_cpf(cpf):
            result.errors.append('CPF inválido')

        for key, label in DATE_LABELS:
            if data.get(key) and not is_valid_br_date(data[key]):
                result.errors.append(f'{label} inválida (use DD/MM/YYYY)')

        program = data.get('programa_milhas')
        if program:
            airline = self.airline_repo.find_by_code_or_name(airlines, program)
            if airline:
                result.airline_company_id = airline['id']
                result.airline_name = airline.get('name')
            else:
                result.warnings.append(f'Programa "{program}" não encontrado')

        if not simple:
            if data.get('custo_mil_milhas_balcao') or data.get('vendedor_balcao'):
                result.is_counter = True
                if not data.get('custo_mil_milhas_balcao'):
                    result.errors.append('Custo por mil milhas é obrigatório para vendas de balcão')
                elif not is_number(data['custo_mil_milhas_balcao']):
                    result.errors.append('Custo por mil milhas deve ser um número')
                if not data.get('vendedor_balcao'):
                    result.warnings.append('Nome do vendedor de balcão não informado')
            else:
                self._resolve_account(data, accounts, result)

        method = data.get('forma_pagamento')
        if method and method not in IMPORT_PAYMENT_METHODS:
            result.errors.append(f"Forma de pagamento inválida. Use: {', '.join(IMPORT_PAYMENT_METHODS)}")

        self._check_duplicate(data, supplier_id, result)
        return result

    def _references(self, supplier_id: str) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
        return self.airline_repo.list_by_supplier(supplier_id), self.account_repo.list_by_supplier(supplier_id)

    # =========================================================================
    # ARQUIVO -> LINHAS VALIDADAS
    # =========================================================================

    def process_file(self, supplier_id: str, filename: str, content: bytes) -> Dict[str, Any]:
        """
        Lê e valida o arquivo inteiro, sem gravar nada.

        Returns:
            {'ok': True, 'rows', 'stats'} ou {'ok': False, 'error'}
        """
        parsed = parse_sales_file(filename, content)
        if not parsed['success']:
            message = parsed['errors'][0]['message'] if parsed['errors'] else 'Erro desconhecido ao ler arquivo'
            return {'ok': False, 'error': message}
        if not parsed['rows']:
            return {'ok': False, 'error': 'O arquivo não contém dados para importar'}
        if len(parsed['rows']) > self.max_rows:
            return {'ok': False, 'error': f'Limite máximo: {self.max_rows} vendas por arquivo'}

        airlines, accounts = self._references(supplier_id)
        rows = []
        for row in parsed['rows']:
            validation = self.validate_row(row['data'], airlines, accounts, supplier_id)
            rows.append({
                'row_number': row['row_number'],
                'data': row['data'],
                'validation': validation.to_dict(),
                'status': 'valid' if validation.is_valid else 'invalid',
            })
        return {'ok': True, 'rows': rows, 'stats': self.stats(rows)}

    @staticmethod
    def stats(rows: List[Dict[str, Any]]) -> Dict[str, int]:
        counts = {'total': len(rows), 'valid': 0, 'invalid': 0, 'imported': 0, 'error': 0}
        for row in rows:
            status = row.get('status')
            if status in counts:
                counts[status] += 1
        return counts

    # =========================================================================
    # IMPORTAÇÃO
    # =========================================================================

    def _import_one(self, supplier_id: str, data: Dict[str, str], validation: ValidationResult,
                    user: str, new_airlines: List[str]) -> Dict[str, Any]:
        program = data.get('programa_milhas')
        if program:
            airline_id = self.airline_service.ensure_airline_exists(program, supplier_id, user)
            if airline_id and not validation.airline_company_id:
                validation.airline_company_id = airline_id
                validation.airline_name = program
                if program not in new_airlines:
                    new_airlines.append(program)

        form = convert_row_to_sale_form(data, validation)
        return self.sales_service.create_sale(form, supplier_id, user)

    @profile_function(name="Importar vendas")
    def import_rows(self, supplier_id: str, rows: List[Dict[str, Any]], user: str) -> Dict[str, Any]:
        """
        Importa as linhas em sequência, na ordem recebida.

        Cada linha é validada de novo; linhas inválidas são puladas e
        falhas de uma linha não interrompem as demais.

        Args:
            rows: [{'row_number', 'data'}] (saída de process_file)

        Returns:
            {'ok', 'rows', 'stats', 'imported', 'errors', 'new_airlines'}
        """
        if not supplier_id:
            return {'ok': False, 'error': 'Agência não encontrada para o usuário'}
        if not rows:
            return {'ok': False, 'error': 'Nenhuma venda para importar'}
        if len(rows) > self.max_rows:
            return {'ok': False, 'error': f'Limite máximo: {self.max_rows} vendas por arquivo'}

        airlines, accounts = self._references(supplier_id)
        new_airlines: List[str] = []
        results = []
        imported = errors = 0

        for row in rows:
            data = row.get('data') or {}
            validation = self.validate_row(data, airlines, accounts, supplier_id)
            entry = {'row_number': row.get('row_number'), 'data': data, 'validation': validation.to_dict()}

            if not validation.is_valid:
                entry['status'] = 'invalid'
                results.append(entry)
                continue

            try:
                outcome = self._import_one(supplier_id, data, validation, user, new_airlines)
            except (ValueError, KeyError, OSError) as e:
                logger.error("[IMPORTAÇÃO] Linha %s falhou: %s", row.get('row_number'), e)
                outcome = {'ok': False, 'error': str(e)}

            if outcome.get('ok'):
                entry['status'] = 'imported'
                entry['sale_id'] = outcome['sale_id']
                imported += 1
            else:
                entry['status'] = 'error'
                entry['error_message'] = outcome.get('error')
                errors += 1
            results.append(entry)

        if self.audit_service:
            self.audit_service.log_import(user, supplier_id, imported, errors)
        logger.info("[IMPORTAÇÃO] %s vendas importadas, %s erros", imported, errors)

        return {
            'ok': imported > 0,
            'rows': results,
            'stats': self.stats(results),
            'imported': imported,
            'errors': errors,
            'new_airlines': new_airlines,
        }
