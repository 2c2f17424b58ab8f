# ==============================================================================
# SERVIÇO DE BILHETES
# ==============================================================================
# Cadastro de bilhetes ligados às vendas e leitura de PDFs/imagens.
#
# LEITURA:
#   1. Texto embutido do PDF (pdfplumber)
#   2. OCR da primeira página (pytesseract) quando a confiança fica abaixo
#      de 50% ou o texto tem menos de 100 caracteres
# ==============================================================================

import io
import logging
from typing import Any, Dict, List, Optional, Tuple

import pdfplumber
import pytesseract
from PIL import Image

from agencia_milhas.helpers import format_date_iso, only_digits, parse_br_date
from agencia_milhas.models import AuditType, TicketExtraction, TicketStatus
from agencia_milhas.performance_logger import profile_function
from agencia_milhas.repositories import SalesRepository, TicketRepository
from agencia_milhas.services.audit_service import AuditService
from agencia_milhas.services.ticket_parser import extract_fields

logger = logging.getLogger(__name__)

MIN_CONFIDENCE = 0.5
MIN_TEXT_LENGTH = 100
OCR_LANGUAGES = 'por+eng+spa'
OCR_RESOLUTION = 300

IMAGE_EXTENSIONS = ('png', 'jpg', 'jpeg', 'webp', 'tif', 'tiff')

TICKET_TEXT_FIELDS = ('pnr', 'ticket_number', 'passenger_name', 'route', 'airline', 'verification_status')


def _extension(filename: str) -> str:
    return filename.rsplit('.', 1)[-1].lower() if '.' in (filename or '') else ''


# ═══════════════════════════════════════════════════════════════════════════════
# EXTRAÇÃO DE TEXTO
# ═══════════════════════════════════════════════════════════════════════════════

def pdf_text(content: bytes) -> str:
    """Texto embutido de todas as páginas, uma página por linha."""
    with pdfplumber.open(io.BytesIO(content)) as pdf:
        return '\n'.join((page.extract_text() or '') for page in pdf.pages)


def _ocr_image(image: Image.Image) -> Tuple[str, float]:
    """
    OCR de uma imagem.

    Returns:
        (texto, confiança média do tesseract entre 0 e 1)
    """
    data = pytesseract.image_to_data(image, lang=OCR_LANGUAGES, output_type=pytesseract.Output.DICT)
    words, scores = [], []
    for word, conf in zip(data.get('text', []), data.get('conf', [])):
        try:
            score = float(conf)
        except (TypeError, ValueError):
            continue
        if score >= 0 and word.strip():
            words.append(word)
            scores.append(score)
    confidence = (sum(scores) / len(scores)) / 100 if scores else 0.0
    return ' '.join(words), confidence


def ocr_pdf_first_page(content: bytes) -> Tuple[str, float]:
    with pdfplumber.open(io.BytesIO(content)) as pdf:
        if not pdf.pages:
            return '', 0.0
        image = pdf.pages[0].to_image(resolution=OCR_RESOLUTION).original
    return _ocr_image(image)


def ocr_image_file(content: bytes) -> Tuple[str, float]:
    with Image.open(io.BytesIO(content)) as image:
        return _ocr_image(image.convert('RGB'))


class TicketService:
    """
    Responsabilidades:
    - CRUD de bilhetes (sempre ligados a uma venda da agência)
    - Leitura automática de dados a partir do arquivo do bilhete
    """

    def __init__(
        self,
        ticket_repo: TicketRepository,
        sales_repo: SalesRepository,
        audit_service: AuditService = None
    ):
        self.ticket_repo = ticket_repo
        self.sales_repo = sales_repo
        self.audit_service = audit_service

    # =========================================================================
    # LEITURA DE ARQUIVOS
    # =========================================================================

    def _try_ocr(self, reader, content: bytes) -> Optional[TicketExtraction]:
        try:
            text, ocr_confidence = reader(content)
        except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError, OSError) as e:
            logger.warning("[BILHETE] OCR indisponível: %s", e)
            return None
        result = extract_fields(text)
        result.engine = 'ocr'
        result.confidence = round(ocr_confidence * result.confidence, 4)
        return result

    @profile_function(name="Extrair dados do bilhete")
    def extract_ticket_data(self, filename: str, content: bytes) -> TicketExtraction:
        """
        Lê um bilhete em PDF ou imagem.

        Raises:
            ValueError: formato de arquivo não suportado ou ilegível
        """
        extension = _extension(filename)

        if extension in IMAGE_EXTENSIONS:
            result = self._try_ocr(ocr_image_file, content)
            if result is None:
                raise ValueError('Não foi possível extrair dados do bilhete')
            return result

        if extension != 'pdf':
            raise ValueError('Formato não suportado. Envie um PDF ou imagem do bilhete')

        try:
            text = pdf_text(content)
        except Exception as e:
            logger.error("[BILHETE] PDF ilegível (%s): %s", filename, e)
            raise ValueError('Não foi possível extrair dados do bilhete') from e

        result = extract_fields(text)
        if result.confidence < MIN_CONFIDENCE or len(text.strip()) < MIN_TEXT_LENGTH:
            logger.info("[BILHETE] Confiança baixa (%.2f), tentando OCR", result.confidence)
            ocr_result = self._try_ocr(ocr_pdf_first_page, content)
            if ocr_result is not None:
                return ocr_result
        return result

    # =========================================================================
    # CRUD
    # =========================================================================

    def _sale_of(self, supplier_id: str, sale_id: str) -> Optional[Dict[str, Any]]:
        sale = self.sales_repo.get(sale_id) if sale_id else None
        if sale and sale.get('supplier_id') == supplier_id:
            return sale
        return None

    def _clean(self, data: Dict[str, Any]) -> Dict[str, Any]:
        values = {k: str(data.get(k) or '').strip() for k in TICKET_TEXT_FIELDS if k in data}
        if 'pnr' in values:
            values['pnr'] = values['pnr'].upper()
        if 'passenger_cpf' in data:
            values['passenger_cpf_encrypted'] = only_digits(data.get('passenger_cpf'))
        for key in ('departure_date', 'return_date'):
            if key in data:
                parsed = parse_br_date(data.get(key))
                values[key] = format_date_iso(parsed) if parsed else None
        if 'status' in data:
            values['status'] = data.get('status') or TicketStatus.PENDING.value
        return values

    def list_tickets(self, supplier_id: str, sale_id: str = None, status: str = None) -> List[Dict[str, Any]]:
        tickets = self.ticket_repo.list_by_supplier(supplier_id)
        if sale_id:
            tickets = [t for t in tickets if t.get('sale_id') == sale_id]
        if status:
            tickets = [t for t in tickets if t.get('status') == status]
        return sorted(tickets, key=lambda t: t.get('created_at', ''), reverse=True)

    def get_ticket(self, supplier_id: str, ticket_id: str) -> Optional[Dict[str, Any]]:
        ticket = self.ticket_repo.get(ticket_id)
        if ticket and ticket.get('supplier_id') == supplier_id:
            return ticket
        return None

    def create_ticket(self, supplier_id: str, data: Dict[str, Any], user: str) -> Dict[str, Any]:
        sale = self._sale_of(supplier_id, data.get('sale_id'))
        if not sale:
            return {'ok': False, 'error': 'Venda não encontrada'}

        values = self._clean(data)
        if not values.get('passenger_name'):
            return {'ok': False, 'error': 'Nome do passageiro é obrigatório'}
        if values.get('status', TicketStatus.PENDING.value) not in {s.value for s in TicketStatus}:
            return {'ok': False, 'error': 'Status inválido'}

        values.setdefault('status', TicketStatus.PENDING.value)
        values.setdefault('verification_status', 'pending')
        values.setdefault('route', sale.get('route_text') or '')
        ticket = self.ticket_repo.insert(dict(
            values,
            supplier_id=supplier_id,
            sale_id=sale['id'],
            ticket_code=self.ticket_repo.next_ticket_code(supplier_id),
            created_by=user,
        ))

        if self.audit_service:
            self.audit_service.log(AuditType.BILHETE.value, user,
                                   f"Bilhete {ticket['ticket_code']} emitido para {ticket['passenger_name']}",
                                   ticket['id'], {'sale_id': sale['id'], 'pnr': ticket.get('pnr')}, supplier_id)
        return {'ok': True, 'ticket': ticket}

    def update_ticket(self, supplier_id: str, ticket_id: str, data: Dict[str, Any], user: str) -> Dict[str, Any]:
        if not self.get_ticket(supplier_id, ticket_id):
            return {'ok': False, 'error': 'Bilhete não encontrado'}
        values = self._clean(data)
        if 'status' in values and values['status'] not in {s.value for s in TicketStatus}:
            return {'ok': False, 'error': 'Status inválido'}
        ticket = self.ticket_repo.update_by_id(ticket_id, values)
        logger.info("[BILHETE] %s atualizado por %s", ticket_id, user)
        return {'ok': True, 'ticket': ticket}

    def delete_ticket(self, supplier_id: str, ticket_id: str, user: str) -> Dict[str, Any]:
        ticket = self.get_ticket(supplier_id, ticket_id)
        if not ticket:
            return {'ok': False, 'error': 'Bilhete não encontrado'}
        self.ticket_repo.delete_by_id(ticket_id)
        if self.audit_service:
            self.audit_service.log(AuditType.BILHETE.value, user,
                                   f"Bilhete {ticket.get('ticket_code')} excluído",
                                   ticket_id, {}, supplier_id)
        return {'ok': True}
