# ==============================================================================
# LEITURA DE BILHETES - Heurísticas por expressões regulares
# ==============================================================================
# Dois leitores sobre o texto já extraído do PDF/OCR:
#
#   extract_fields  -> padrões genéricos + específicos (LATAM, GOL, AZUL),
#                      idioma e confiança (campos encontrados / 8)
#   parse_document  -> leitor por palavras-chave, com formatos normalizados
#                      (bilhete 999-9999999999, CPF 000.000.000-00, data ISO)
#
# Funções puras: nada aqui lê arquivos nem chama serviços externos.
# ==============================================================================

import re
from typing import Dict, List, Optional, Pattern, Tuple

from agencia_milhas.models import TicketExtraction

TOTAL_FIELDS = 8

LANGUAGE_KEYWORDS = {
    'en': ('passenger', 'flight', 'ticket', 'from', 'to', 'total'),
    'pt': ('passageiro', 'voo', 'bilhete', 'de', 'para', 'total'),
    'es': ('pasajero', 'vuelo', 'boleto', 'desde', 'hasta', 'total'),
}

_I = re.IGNORECASE

GENERIC_PATTERNS: Dict[str, Pattern] = {
    'pnr': re.compile(r'(?:LOC(?:ALIZADOR)?|PNR|RECORD\s*LOC(?:ATOR)?)[:\s]*([A-Z0-9]{6})', _I),
    'ticketNumber': re.compile(r'(?:TICKET|BILHETE|E-TICKET|BOLETO)[:\s#]*(\d{3}[-\s]?\d{10})', _I),
    'cpf': re.compile(r'(?:CPF|TAX)[:\s]*(\d{3}\.?\d{3}\.?\d{3}[-\s]?\d{2})', _I),
    'route': re.compile(r'(?:ROUTE|ROTA|FROM|DE|DESDE)[:\s]*([A-Z]{3})\s*[-/]\s*([A-Z]{3})', _I),
    'flightNumber': re.compile(r'(?:FLIGHT|VOO|VÔO|VUELO)[:\s#]*([A-Z0-9]{2}\s?\d{3,4})', _I),
    'passengerName': re.compile(r'(?:PASSENGER|PASSAGEIRO|PASAJERO|NAME|NOME)[:\s]*([A-Z\s]{5,50})', _I),
    'airline': re.compile(r'(?:AIRLINE|CIA\s*AEREA|COMPANHIA|AEROLÍNEA)[:\s]*([A-Z\s]{3,30})', _I),
    'date': re.compile(r'(\d{2}[-/]\d{2}[-/]\d{4})'),
    'total': re.compile(r'(?:TOTAL|VALOR)[:\s]*(?:R\$|USD|BRL)?\s*(\d{1,3}(?:[.,]\d{3})*(?:[.,]\d{2})?)', _I),
}

AIRLINE_PATTERNS: Dict[str, Dict[str, Pattern]] = {
    'LATAM': {
        'pnr': re.compile(r'(?:RECORD\s*LOC|LOC)[:\s]*([A-Z0-9]{6})', _I),
        'ticketNumber': re.compile(r'(?:E-TICKET|TICKET)[:\s#]*(\d{3}[-\s]?\d{10})', _I),
    },
    'GOL': {
        'pnr': re.compile(r'(?:LOCALIZADOR|LOC)[:\s]*([A-Z0-9]{6})', _I),
        'ticketNumber': re.compile(r'(?:BILHETE)[:\s#]*(\d{3}[-\s]?\d{10})', _I),
    },
    'AZUL': {
        'pnr': re.compile(r'(?:LOCALIZADOR|PNR)[:\s]*([A-Z0-9]{6})', _I),
        'ticketNumber': re.compile(r'(?:BILHETE|TICKET)[:\s#]*(\d{3}[-\s]?\d{10})', _I),
    },
}


def detect_language(text: str) -> str:
    """'pt', 'es' ou 'en' pela contagem de palavras-chave (empate favorece pt)."""
    lower = (text or '').lower()
    scores = {lang: sum(1 for k in words if k in lower) for lang, words in LANGUAGE_KEYWORDS.items()}
    best = max(scores.values())
    if scores['pt'] == best:
        return 'pt'
    if scores['es'] == best:
        return 'es'
    return 'en'


def detect_airline_code(text: str) -> Optional[str]:
    upper = (text or '').upper()
    for airline in ('LATAM', 'GOL', 'AZUL'):
        if airline in upper:
            return airline
    return None


def _normalize_total(raw: str) -> str:
    # "1.234,56" -> "1234.56"
    return re.sub(r'[.,](?=\d{3})', '', raw).replace(',', '.')


def extract_fields(text: str) -> TicketExtraction:
    """
    Extrai os campos de um bilhete a partir do texto.

    A confiança é a fração dos 8 campos principais encontrados
    (pnr, ticketNumber, cpf, route, flightNumber, passengerName,
    airline, departureDate). 'total', 'from' e 'to' são extras.
    """
    text = text or ''
    fields: Dict[str, str] = {}
    found = 0

    airline = detect_airline_code(text)
    patterns = dict(GENERIC_PATTERNS)
    if airline:
        patterns.update(AIRLINE_PATTERNS[airline])

    match = patterns['pnr'].search(text)
    if match:
        fields['pnr'] = match.group(1).upper()
        found += 1

    match = patterns['ticketNumber'].search(text)
    if match:
        fields['ticketNumber'] = re.sub(r'[-\s]', '', match.group(1))
        found += 1

    match = patterns['cpf'].search(text)
    if match:
        fields['cpf'] = re.sub(r'[.\-\s]', '', match.group(1))
        found += 1

    match = patterns['route'].search(text)
    if match:
        fields['from'] = match.group(1).upper()
        fields['to'] = match.group(2).upper()
        fields['route'] = f"{fields['from']}-{fields['to']}"
        found += 1

    match = patterns['flightNumber'].search(text)
    if match:
        fields['flightNumber'] = re.sub(r'\s', '', match.group(1)).upper()
        found += 1

    match = patterns['passengerName'].search(text)
    if match:
        fields['passengerName'] = match.group(1).strip()
        found += 1

    match = patterns['airline'].search(text)
    if match:
        fields['airline'] = match.group(1).strip()
        found += 1
    elif airline:
        fields['airline'] = airline
        found += 1

    dates = patterns['date'].findall(text)
    if dates:
        fields['departureDate'] = dates[0]
        found += 1

    match = patterns['total'].search(text)
    if match:
        fields['total'] = _normalize_total(match.group(1))

    return TicketExtraction(
        fields=fields,
        confidence=found / TOTAL_FIELDS,
        language=detect_language(text),
        text_length=len(text.strip()),
    )


# ═══════════════════════════════════════════════════════════════════════════════
# LEITOR POR PALAVRAS-CHAVE
# ═══════════════════════════════════════════════════════════════════════════════

_AIRLINE_KEYWORDS: Tuple[Tuple[str, str], ...] = (
    (r'LATAM|TAM LINHAS A[EÉ]REAS|LATAM AIRLINES', 'LATAM'),
    (r'GOL LINHAS A[EÉ]REAS|VOEGOL|GOL AIRLINES', 'GOL'),
    (r'AZUL LINHAS A[EÉ]REAS|AZUL S\.A\.|AZUL AIRLINES', 'AZUL'),
    (r'TAP AIR PORTUGAL|TAP PORTUGAL', 'TAP'),
    (r'AIR FRANCE', 'Air France'),
    (r'KLM ROYAL DUTCH', 'KLM'),
)

_PNR_PATTERNS = [
    re.compile(r'(?:LOCALIZADOR|LOCALIZACAO|C[ÓO]DIGO DA RESERVA|CODIGO DA RESERVA|BOOKING CODE|'
               r'BOOKING REF(?:ERENCE)?|RESERVATION CODE|PNR)\s*[:\-]?\s*([A-Z0-9]{5,7})', _I),
    re.compile(r'\bPNR\s*[:\-]?\s*([A-Z0-9]{5,7})\b', _I),
]

_TICKET_PATTERNS = [
    re.compile(r'(?:BILHETE ELETR[ÔO]NICO|BILHETE|E-?TICKET|ELECTRONIC TICKET)[^0-9]{0,20}(\d{3}-?\d{10})', _I),
    re.compile(r'\bTICKET\s*[:\-]?\s*(\d{3}-?\d{10})\b', _I),
]

_CPF_PATTERNS = [re.compile(r'CPF[^0-9]{0,10}([\d.\-]{11,14})', _I)]

_NAME_PATTERNS = [
    re.compile(r"(?:PASSAGEIRO|PASSENGER|PASAJERO|NOME DO PASSAGEIRO)[^A-ZÁ-ÚÃÕÇ']{0,10}"
               r"([A-ZÁ-ÚÃÕÇ' ./-]{5,60})", _I),
]

_ROUTE_PATTERN = re.compile(r'\b([A-Z]{3})\s*[-–>→/]\s*([A-Z]{3})\b')

_DEPARTURE_PATTERNS = [
    re.compile(r'(?:IDA|DEPARTURE|SA[ÍI]DA|DATA DO VOO|DATA DE PARTIDA)[^0-9]{0,20}(\d{2}/\d{2}/\d{4})', _I),
]

_FLIGHT_PATTERNS = [
    re.compile(r'(?:VOO|FLIGHT)[^A-Z0-9]{0,15}([A-Z0-9]{2}\s?\d{3,4})', _I),
    re.compile(r'\b((?:LA|JJ|G3|AD|TP|AF|KL|IB|UX|LH|BA|UA|AA|DL)\s?\d{3,4})\b', _I),
]


def _normalize_spaces(text: str) -> str:
    return re.sub(r'\s+', ' ', text or '').strip()


def _first_match(text: str, patterns: List[Pattern]) -> Optional[str]:
    for pattern in patterns:
        match = pattern.search(text)
        if match and match.group(1):
            return _normalize_spaces(match.group(1))
    return None


def detect_airline(text: str) -> Optional[str]:
    upper = (text or '').upper()
    for pattern, name in _AIRLINE_KEYWORDS:
        if re.search(pattern, upper):
            return name
    return None


def extract_ticket_number(text: str) -> Optional[str]:
    ticket = _first_match(text, _TICKET_PATTERNS)
    if not ticket:
        return None
    return re.sub(r'(\d{3})-?(\d{10})', r'\1-\2', ticket)


def extract_cpf(text: str) -> Optional[str]:
    raw = _first_match(text, _CPF_PATTERNS)
    if not raw:
        return None
    digits = re.sub(r'\D', '', raw)
    if len(digits) != 11:
        return None
    return f"{digits[:3]}.{digits[3:6]}.{digits[6:9]}-{digits[9:]}"


def extract_passenger_name(text: str) -> Optional[str]:
    name = _first_match(text, _NAME_PATTERNS)
    if not name:
        return None
    return re.sub(r'[.,/\s]+$', '', name)


def extract_route(text: str) -> Optional[str]:
    match = _ROUTE_PATTERN.search((text or '').upper())
    if not match:
        return None
    return f"{match.group(1)}-{match.group(2)}"


def extract_departure_date(text: str) -> Optional[str]:
    """Primeira data de partida encontrada, convertida para AAAA-MM-DD."""
    found = _first_match(text, _DEPARTURE_PATTERNS)
    if not found:
        generic = re.search(r'(\d{2}/\d{2}/\d{4})', text or '')
        found = generic.group(1) if generic else None
    if not found:
        return None
    day, month, year = found.split('/')
    return f"{year}-{month}-{day}"


def extract_flight_number(text: str) -> Optional[str]:
    flight = _first_match(text, _FLIGHT_PATTERNS)
    return re.sub(r'\s+', '', flight, count=1).upper() if flight else None


def parse_document(raw_text: str) -> Dict[str, Optional[str]]:
    """
    Leitor por palavras-chave. Sempre devolve as 8 chaves;
    campos não encontrados ficam None.
    """
    text = _normalize_spaces(raw_text)
    return {
        'airline': detect_airline(text),
        'pnr': (_first_match(text, _PNR_PATTERNS) or '').upper() or None,
        'ticketNumber': extract_ticket_number(text),
        'passengerName': extract_passenger_name(text),
        'cpf': extract_cpf(text),
        'route': extract_route(text),
        'departureDate': extract_departure_date(text),
        'flightNumber': extract_flight_number(text),
    }
