import io
from datetime import date, datetime

import pytest
from openpyxl import Workbook, load_workbook

from agencia_milhas.services.bulk_import_service import (
    FULL_COLUMNS,
    SIMPLE_COLUMNS,
    generate_template,
    normalize_number_cell,
    normalize_row,
    parse_sales_file,
)

from conftest import CPF_ANA, OWNER_EMAIL

SIMPLE_HEADER = ';'.join(SIMPLE_COLUMNS)


def _csv(*lines):
    return '\n'.join((SIMPLE_HEADER,) + lines).encode('utf-8')


VALID_LINE = '10/03/2025;João da Silva;25.000;18,50;320,00;1.850,00;pix;paid;LATAM;abc123;'
UNKNOWN_PROGRAM_LINE = '11/03/2025;Maria Lima;10.000;20;0;400;boleto;pending;AZUL;;'
INVALID_LINE = '31/02/2025;José;10.000;20;0;abc;cheque;pending;LATAM;;'


# ── leitura e normalização ───────────────────────────────────────────────────

def test_normalize_number_cell():
    assert normalize_number_cell('25.000') == '25000'
    assert normalize_number_cell('1.850,50') == '1850.5'
    assert normalize_number_cell(18.5) == '18.5'
    assert normalize_number_cell('') == ''
    assert normalize_number_cell('abc') == 'abc'


def test_normalize_simple_row_fills_full_schema():
    data = normalize_row({
        'data_venda': '2025-03-10', 'nome_cliente': ' Ana ', 'quantidade_milhas': '25.000',
        'custo_milheiro': '18,5', 'valor_total': '1.850,00', 'forma_pagamento': 'PIX',
        'programa_milhas': 'latam',
    })
    assert data['template'] == 'simple'
    assert data['data_venda'] == '10/03/2025'
    assert data['nome_cliente'] == 'Ana'
    assert data['forma_pagamento'] == 'pix'
    assert data['programa_milhas'] == 'LATAM'
    assert data['tipo_viagem'] == 'one_way'
    assert data['numero_passageiros'] == '1'
    assert set(FULL_COLUMNS) <= set(data)


def test_normalize_full_row_sums_miles():
    data = normalize_row({'origem': 'gru', 'destino': 'gig', 'milhas_ida': '12.500', 'milhas_volta': '12.500'})
    assert data['template'] == 'full'
    assert data['origem'] == 'GRU'
    assert data['quantidade_milhas'] == '25000'


def test_parse_csv_skips_instruction_and_blank_rows():
    instructions = ';'.join('OBRIGATÓRIO' if i == 0 else '' for i in range(len(SIMPLE_COLUMNS)))
    parsed = parse_sales_file('vendas.csv', _csv(instructions, VALID_LINE, ';' * (len(SIMPLE_COLUMNS) - 1)))
    assert parsed['success']
    assert parsed['total_rows'] == 1
    row = parsed['rows'][0]
    assert row['row_number'] == 2
    assert row['data']['quantidade_milhas'] == '25000'
    assert row['data']['localizador'] == 'ABC123'


def test_parse_csv_with_comma_delimiter():
    content = ('data_venda,nome_cliente,quantidade_milhas,custo_milheiro\n'
               '10/03/2025,Ana,10000,20\n').encode('utf-8')
    parsed = parse_sales_file('vendas.csv', content)
    assert parsed['rows'][0]['data']['nome_cliente'] == 'Ana'


def test_parse_rejects_unknown_extension():
    parsed = parse_sales_file('vendas.txt', b'x')
    assert not parsed['success']
    assert parsed['errors'][0]['message'] == 'Formato de arquivo não suportado. Use .csv ou .xlsx'


def test_parse_xlsx_with_native_cells():
    workbook = Workbook()
    sheet = workbook.active
    sheet.append(list(SIMPLE_COLUMNS))
    sheet.append(['OBRIGATÓRIO'] + [None] * (len(SIMPLE_COLUMNS) - 1))
    sheet.append([datetime(2025, 3, 10), 'Ana', 25000, 18.5, 320, 1850, 'pix', 'paid', 'LATAM', None, None])
    buffer = io.BytesIO()
    workbook.save(buffer)

    parsed = parse_sales_file('vendas.xlsx', buffer.getvalue())
    row = parsed['rows'][0]
    assert row['row_number'] == 3
    assert row['data']['data_venda'] == '10/03/2025'
    assert row['data']['quantidade_milhas'] == '25000'
    assert row['data']['custo_milheiro'] == '18.5'


# ── modelos ──────────────────────────────────────────────────────────────────

def test_generate_csv_template():
    content, filename, mimetype = generate_template('simple', 'csv', today=date(2025, 3, 10))
    assert filename == 'modelo-importacao-faturamento.csv'
    assert mimetype == 'text/csv'
    lines = content.decode('utf-8-sig').splitlines()
    assert lines[0] == SIMPLE_HEADER
    assert lines[1].startswith('OBRIGATÓRIO;')
    assert lines[2].startswith('10/03/2025;João da Silva')


def test_generate_full_xlsx_template():
    content, filename, _ = generate_template('full', 'xlsx')
    assert filename == 'modelo-importacao-completa.xlsx'
    sheet = load_workbook(io.BytesIO(content)).active
    header = [c.value for c in sheet[1]]
    assert header == list(FULL_COLUMNS)
    instructions = [c.value for c in sheet[2]]
    assert instructions.count('OBRIGATÓRIO') == 13


def test_generate_template_rejects_unknown_kind():
    with pytest.raises(ValueError):
        generate_template('outro')
    with pytest.raises(ValueError):
        generate_template('simple', 'pdf')


def test_template_reads_back_as_valid_row(container, agency, airline):
    content, filename, _ = generate_template('simple', 'xlsx', today=date(2025, 3, 10))
    result = container.bulk_import_service.process_file(agency, filename, content)
    assert result['ok'], result
    assert result['rows'][0]['status'] == 'valid'
    assert result['rows'][0]['validation']['airline_company_id'] == airline['id']


# ── validação e importação ───────────────────────────────────────────────────

def test_process_file_validates_rows(container, agency, airline):
    result = container.bulk_import_service.process_file(
        agency, 'vendas.csv', _csv(VALID_LINE, UNKNOWN_PROGRAM_LINE, INVALID_LINE)
    )
    assert result['ok']
    assert result['stats'] == {'total': 3, 'valid': 2, 'invalid': 1, 'imported': 0, 'error': 0}

    valid, unknown, invalid = result['rows']
    assert valid['validation']['errors'] == []
    assert unknown['validation']['warnings'] == ['Programa "AZUL" não encontrado']
    assert 'Valor total deve ser um número' in invalid['validation']['errors']
    assert 'Data da venda inválida (use DD/MM/YYYY)' in invalid['validation']['errors']
    assert any(e.startswith('Forma de pagamento inválida') for e in invalid['validation']['errors'])

    # nada foi gravado na pré-visualização
    assert container.sales_repo.load(agency) == []


def test_process_file_errors(container, agency):
    service = container.bulk_import_service
    assert service.process_file(agency, 'vendas.csv', _csv())['error'] == \
        'O arquivo não contém dados para importar'
    assert service.process_file(agency, 'vendas.pdf', b'%PDF')['error'] == \
        'Formato de arquivo não suportado. Use .csv ou .xlsx'

    service.max_rows = 1
    assert service.process_file(agency, 'vendas.csv', _csv(VALID_LINE, VALID_LINE))['error'] == \
        'Limite máximo: 1 vendas por arquivo'


def test_import_rows_creates_legacy_sales_and_airlines(container, agency, airline):
    service = container.bulk_import_service
    preview = service.process_file(agency, 'vendas.csv', _csv(VALID_LINE, UNKNOWN_PROGRAM_LINE, INVALID_LINE))

    result = service.import_rows(agency, preview['rows'], OWNER_EMAIL)
    assert result['ok']
    assert result['imported'] == 2
    assert result['errors'] == 0
    assert result['new_airlines'] == ['AZUL']
    assert result['stats']['invalid'] == 1

    sales = container.sales_repo.load(agency)
    first = next(s for s in sales if s['client_name'] == 'João da Silva')
    assert first['sale_source'] == 'bulk_import'
    assert first['sale_date'] == '2025-03-10'
    assert first['profit'] == 1067.5
    assert first['payment_status'] == 'paid'
    assert first['locator'] == 'ABC123'

    codes = {a['code'] for a in container.airline_service.list_airlines(agency)}
    assert codes == {'LATAM', 'AZUL'}


def test_reimport_flags_duplicate_locator(container, agency, airline):
    service = container.bulk_import_service
    preview = service.process_file(agency, 'vendas.csv', _csv(VALID_LINE))
    service.import_rows(agency, preview['rows'], OWNER_EMAIL)

    again = service.process_file(agency, 'vendas.csv', _csv(VALID_LINE))
    validation = again['rows'][0]['validation']
    assert validation['is_duplicate']
    assert validation['is_valid']


def test_import_full_row_debits_account(container, agency, airline, account):
    row = {
        'data_venda': '10/03/2025', 'nome_cliente': 'Ana Souza', 'cpf_cliente': '529.982.247-25',
        'programa_milhas': 'LATAM', 'numero_conta': '123456', 'tipo_viagem': 'round_trip',
        'origem': 'GRU', 'destino': 'GIG', 'data_ida': '21/11/2025', 'data_volta': '28/11/2025',
        'milhas_ida': '12.500', 'milhas_volta': '12.500', 'numero_passageiros': '1',
        'taxa_embarque_total': '320', 'valor_total': '1.850,00', 'forma_pagamento': 'pix',
    }
    data = normalize_row(row)
    result = container.bulk_import_service.import_rows(agency, [{'row_number': 2, 'data': data}], OWNER_EMAIL)
    assert result['imported'] == 1, result

    sale = container.sales_repo.get(result['rows'][0]['sale_id'])
    assert sale['channel'] == 'internal'
    assert sale['route_text'] == 'GRU-GIG, GIG-GRU'
    assert sale['miles_used'] == 25000
    assert container.account_repo.get(account['id'])['balance'] == 75000
    assert container.cpf_repo.find_entry(airline['id'], CPF_ANA)['usage_count'] == 1


def test_import_row_with_unknown_account_fails(container, agency, airline, account):
    data = normalize_row({
        'data_venda': '10/03/2025', 'nome_cliente': 'Ana', 'cpf_cliente': CPF_ANA,
        'programa_milhas': 'LATAM', 'numero_conta': '999', 'tipo_viagem': 'one_way',
        'origem': 'GRU', 'destino': 'GIG', 'data_ida': '21/11/2025', 'milhas_ida': '10000',
        'numero_passageiros': '1', 'taxa_embarque_total': '0', 'valor_total': '500',
        'forma_pagamento': 'pix',
    })
    result = container.bulk_import_service.import_rows(agency, [{'row_number': 2, 'data': data}], OWNER_EMAIL)
    assert not result['ok']
    assert result['errors'] == 1
    assert result['rows'][0]['validation']['warnings'] == ['Conta "999" não encontrada ou inativa']
    assert result['rows'][0]['error_message'] == 'Venda interna exige programa e conta de milhas'


def test_import_rows_guards(container, agency):
    service = container.bulk_import_service
    assert service.import_rows(agency, [], OWNER_EMAIL)['error'] == 'Nenhuma venda para importar'
    assert service.import_rows(None, [{'data': {}}], OWNER_EMAIL)['error'] == \
        'Agência não encontrada para o usuário'
