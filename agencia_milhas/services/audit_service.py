# ==============================================================================
# SERVIÇO DE AUDITORIA
# ==============================================================================
# Centraliza o registro de eventos com mensagens legíveis.
# Regra de ouro: se entra dinheiro ou sai milha, fica registrado.
# ==============================================================================

import logging
from typing import Any, Dict, List

from agencia_milhas.helpers import format_brl, format_miles
from agencia_milhas.models import AuditType
from agencia_milhas.repositories.audit_repository import AuditRepository

logger = logging.getLogger(__name__)


class AuditService:
    """
    Registro e consulta da trilha de auditoria.
    Todos os logs carregam o supplier_id da agência que gerou o evento.
    """

    def __init__(self, audit_repo: AuditRepository):
        self.audit_repo = audit_repo

    # =========================================================================
    # REGISTRO DE EVENTOS
    # =========================================================================

    def log(
        self,
        log_type: str,
        user: str,
        message: str,
        related_id: str = '',
        details: Dict[str, Any] = None,
        supplier_id: str = None
    ) -> None:
        self.audit_repo.log(log_type, user, message, related_id, details, supplier_id)
        logger.info("[AUDITORIA] %s | %s | %s", log_type, user or 'sistema', message)

    def log_sale_created(self, user: str, sale: Dict[str, Any]) -> None:
        message = (
            f"Venda registrada para {sale.get('client_name')} "
            f"({sale.get('route_text') or 'sem rota'}) - {format_brl(sale.get('price_total'))}"
            f" - {format_miles(sale.get('miles_used'))} milhas"
        )
        self.log(
            AuditType.VENDA.value, user, message, sale.get('id', ''),
            {
                'channel': sale.get('channel'),
                'sale_source': sale.get('sale_source'),
                'price_total': sale.get('price_total'),
                'miles_used': sale.get('miles_used'),
                'profit': sale.get('profit'),
            },
            sale.get('supplier_id'),
        )

    def log_sale_deleted(self, user: str, sale: Dict[str, Any]) -> None:
        message = f"Venda de {sale.get('client_name')} excluída ({format_brl(sale.get('price_total'))})"
        self.log(AuditType.VENDA.value, user, message, sale.get('id', ''),
                 {'miles_restored': sale.get('miles_used') if sale.get('mileage_account_id') else 0},
                 sale.get('supplier_id'))

    def log_payment(
        self,
        user: str,
        sale: Dict[str, Any],
        amount: float,
        method: str,
        new_status: str
    ) -> None:
        message = (
            f"Pagamento de {format_brl(amount)} ({method}) na venda de "
            f"{sale.get('client_name')} - status: {new_status}"
        )
        self.log(AuditType.PAGAMENTO.value, user, message, sale.get('id', ''),
                 {'amount': amount, 'method': method, 'payment_status': new_status},
                 sale.get('supplier_id'))

    def log_movement(self, user: str, account: Dict[str, Any], movement: Dict[str, Any]) -> None:
        sign = '+' if movement.get('type') == 'credit' else '-'
        message = (
            f"Conta {account.get('account_number')}: {sign}{format_miles(movement.get('amount'))} milhas"
            f" ({movement.get('note') or 'sem observação'})"
        )
        self.log(AuditType.CONTA.value, user, message, account.get('id', ''),
                 {'movement_id': movement.get('id'), 'type': movement.get('type'),
                  'amount': movement.get('amount')},
                 account.get('supplier_id'))

    def log_cpf_blocked(self, airline_id: str, cpf_masked: str, blocked_until: str,
                        supplier_id: str = None) -> None:
        message = f"CPF {cpf_masked} atingiu o limite do programa; bloqueado até {blocked_until}"
        self.log(AuditType.CPF.value, 'sistema', message, airline_id,
                 {'blocked_until': blocked_until}, supplier_id)

    def log_import(self, user: str, supplier_id: str, imported: int, errors: int) -> None:
        message = f"Importação em massa: {imported} vendas importadas, {errors} com erro"
        self.log(AuditType.IMPORTACAO.value, user, message, '',
                 {'imported': imported, 'errors': errors}, supplier_id)

    # =========================================================================
    # CONSULTA
    # =========================================================================

    def search_logs(
        self,
        supplier_id: str,
        log_type: str = None,
        user: str = None,
        query: str = '',
        limit: int = 200
    ) -> List[Dict[str, Any]]:
        """Logs da agência, mais recentes primeiro, com filtros opcionais."""
        query = (query or '').strip().lower()
        result = []
        for entry in self.audit_repo.load():
            if entry.get('supplier_id') != supplier_id:
                continue
            if log_type and entry.get('type') != log_type:
                continue
            if user and entry.get('user') != user:
                continue
            if query and query not in (entry.get('message') or '').lower():
                continue
            result.append(entry)
            if len(result) >= limit:
                break
        return result
