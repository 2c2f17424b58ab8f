from datetime import date, datetime

import pytest

from agencia_milhas.helpers import (
    add_one_year,
    format_brl,
    format_date_br,
    format_miles,
    hide_cpf,
    is_number,
    mask_cpf,
    mask_phone,
    parse_br_date,
    parse_br_number,
    unmask_currency,
    validate_cpf,
)


@pytest.mark.parametrize('raw, expected', [
    ('1.850,50', 1850.5),
    ('25.000', 25000.0),
    ('R$ 99,90', 99.9),
    ('1850.50', 1850.5),
    ('', 0.0),
    ('abc', 0.0),
    (None, 0.0),
    (12, 12.0),
])
def test_parse_br_number(raw, expected):
    assert parse_br_number(raw) == expected


def test_is_number():
    assert is_number('1.850,50')
    assert is_number('')
    assert is_number(3.5)
    assert not is_number('abc')
    assert not is_number('12a')


def test_parse_br_date_formats():
    assert parse_br_date('21/11/2025') == date(2025, 11, 21)
    assert parse_br_date('21/11/2025 14:30') == date(2025, 11, 21)
    assert parse_br_date('2025-11-21') == date(2025, 11, 21)
    assert parse_br_date('2025-11-21T00:00:00Z') == date(2025, 11, 21)
    assert parse_br_date(datetime(2025, 1, 2, 10, 0)) == date(2025, 1, 2)
    # serial do Excel
    assert parse_br_date(45658) == date(2025, 1, 1)


def test_parse_br_date_rejects_invalid():
    assert parse_br_date('31/02/2025') is None
    assert parse_br_date('01/01/1999') is None
    assert parse_br_date('ontem') is None
    assert parse_br_date('') is None
    assert parse_br_date(123) is None


def test_format_date_br():
    assert format_date_br('2025-03-09') == '09/03/2025'
    assert format_date_br('lixo') == ''


def test_add_one_year_leap_day():
    assert add_one_year(date(2024, 2, 29)) == date(2025, 2, 28)
    assert add_one_year(date(2025, 3, 10)) == date(2026, 3, 10)


def test_validate_cpf():
    assert validate_cpf('529.982.247-25')
    assert validate_cpf('11144477735')
    assert not validate_cpf('529.982.247-24')
    assert not validate_cpf('111.111.111-11')
    assert not validate_cpf('1234')


def test_cpf_masks():
    assert mask_cpf('52998224725') == '529.982.247-25'
    assert mask_cpf('5299') == '529.9'
    assert hide_cpf('52998224725') == '***.***.***-25'


def test_mask_phone():
    assert mask_phone('11987654321') == '(11) 98765-4321'
    assert mask_phone('1134567890') == '(11) 3456-7890'


def test_currency_and_miles():
    assert format_brl(1234.5) == 'R$ 1.234,50'
    assert format_brl(-10) == '-R$ 10,00'
    assert unmask_currency('R$ 1.234,56') == 1234.56
    assert format_miles(25000) == '25.000'
