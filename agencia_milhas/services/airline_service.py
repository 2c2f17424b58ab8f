# ==============================================================================
# SERVIÇO DE COMPANHIAS AÉREAS E FORNECEDORES
# ==============================================================================

import logging
from typing import Any, Dict, List, Optional

from agencia_milhas.helpers import to_float, to_int
from agencia_milhas.models import AuditType, RenewalType, SupplierPaymentType
from agencia_milhas.repositories import (
    AirlineRepository,
    SupplierAirlineRepository,
    SupplierRepository,
)
from agencia_milhas.services.audit_service import AuditService

logger = logging.getLogger(__name__)

# Valores usados quando uma companhia é criada automaticamente na importação
AUTO_AIRLINE_DEFAULTS = {
    'cpf_limit': 25,
    'renewal_type': RenewalType.ANNUAL.value,
    'cost_per_mile': 0.029,
}


class AirlineService:
    """Cadastro de programas de milhas por agência."""

    def __init__(
        self,
        airline_repo: AirlineRepository,
        link_repo: SupplierAirlineRepository,
        audit_service: AuditService = None
    ):
        self.airline_repo = airline_repo
        self.link_repo = link_repo
        self.audit_service = audit_service

    def list_airlines(self, supplier_id: str) -> List[Dict[str, Any]]:
        airlines = self.airline_repo.list_by_supplier(supplier_id)
        return sorted(airlines, key=lambda a: a.get('name') or '')

    def get_airline(self, supplier_id: str, airline_id: str) -> Optional[Dict[str, Any]]:
        airline = self.airline_repo.get(airline_id)
        if airline and airline.get('supplier_id') == supplier_id:
            return airline
        return None

    def _clean(self, data: Dict[str, Any]) -> Dict[str, Any]:
        values = {}
        if 'code' in data:
            values['code'] = str(data.get('code') or '').strip().upper()
        if 'name' in data:
            values['name'] = str(data.get('name') or '').strip()
        if 'cost_per_mile' in data:
            values['cost_per_mile'] = to_float(data.get('cost_per_mile'))
        if 'cpf_limit' in data:
            values['cpf_limit'] = to_int(data.get('cpf_limit'), AUTO_AIRLINE_DEFAULTS['cpf_limit'])
        if 'renewal_type' in data:
            values['renewal_type'] = data.get('renewal_type') or RenewalType.ANNUAL.value
        return values

    def _validate(self, values: Dict[str, Any]) -> Optional[str]:
        if 'code' in values and not values['code']:
            return 'Código da companhia é obrigatório'
        if 'name' in values and not values['name']:
            return 'Nome da companhia é obrigatório'
        if values.get('renewal_type') not in (None, RenewalType.ANNUAL.value, RenewalType.ROLLING.value):
            return 'Tipo de renovação inválido. Use: annual ou rolling'
        if 'cpf_limit' in values and values['cpf_limit'] <= 0:
            return 'Limite de CPFs deve ser maior que zero'
        return None

    def create_airline(self, supplier_id: str, data: Dict[str, Any], user: str) -> Dict[str, Any]:
        values = dict(AUTO_AIRLINE_DEFAULTS)
        values.update(self._clean(dict({'code': '', 'name': ''}, **data)))
        error = self._validate(values)
        if error:
            return {'ok': False, 'error': error}
        if self.airline_repo.find_by_code(supplier_id, values['code']):
            return {'ok': False, 'error': f"Companhia {values['code']} já cadastrada"}

        airline = self.airline_repo.insert(dict(values, supplier_id=supplier_id, user_id=user))
        self.link_repo.link(supplier_id, airline['id'])
        if self.audit_service:
            self.audit_service.log(AuditType.SISTEMA.value, user,
                                   f"Companhia {airline['code']} cadastrada",
                                   airline['id'], values, supplier_id)
        return {'ok': True, 'airline': airline}

    def update_airline(self, supplier_id: str, airline_id: str, data: Dict[str, Any], user: str) -> Dict[str, Any]:
        if not self.get_airline(supplier_id, airline_id):
            return {'ok': False, 'error': 'Companhia aérea não encontrada'}
        values = self._clean(data)
        error = self._validate(values)
        if error:
            return {'ok': False, 'error': error}
        airline = self.airline_repo.update_by_id(airline_id, values)
        return {'ok': True, 'airline': airline}

    def delete_airline(self, supplier_id: str, airline_id: str, user: str) -> Dict[str, Any]:
        if not self.get_airline(supplier_id, airline_id):
            return {'ok': False, 'error': 'Companhia aérea não encontrada'}
        self.airline_repo.delete_by_id(airline_id)
        self.link_repo.delete_where(lambda r: r.get('airline_company_id') == airline_id)
        return {'ok': True}

    def ensure_airline_exists(self, code: str, supplier_id: str, user: str = None) -> Optional[str]:
        """
        Devolve o ID da companhia com o código informado, criando-a com os
        valores padrão (25 CPFs, renovação anual, R$ 0,029/milha) se não existir.
        """
        if not code:
            return None
        code = code.strip().upper()
        existing = self.airline_repo.find_by_code(supplier_id, code)
        if existing:
            return existing['id']

        airline = self.airline_repo.insert(dict(
            AUTO_AIRLINE_DEFAULTS, supplier_id=supplier_id, user_id=user, code=code, name=code
        ))
        self.link_repo.link(supplier_id, airline['id'])
        logger.info("[COMPANHIA] %s cadastrada automaticamente para a agência %s", code, supplier_id)
        return airline['id']


class SupplierService:
    """Fornecedores de milhas (pré-pago ou por uso)."""

    VALID_PAYMENT_TYPES = frozenset(t.value for t in SupplierPaymentType)

    def __init__(self, supplier_repo: SupplierRepository, audit_service: AuditService = None):
        self.supplier_repo = supplier_repo
        self.audit_service = audit_service

    def list_suppliers(self, owner_supplier_id: str) -> List[Dict[str, Any]]:
        rows = self.supplier_repo.find_all_by('owner_supplier_id', owner_supplier_id)
        return sorted(rows, key=lambda r: r.get('name') or '')

    def _clean(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return {
            'name': str(data.get('name') or '').strip(),
            'phone': str(data.get('phone') or '').strip(),
            'pix_key': str(data.get('pix_key') or '').strip(),
            'payment_type': data.get('payment_type') or SupplierPaymentType.PREPAID.value,
            'notes': str(data.get('notes') or '').strip(),
        }

    def save_supplier(
        self,
        owner_supplier_id: str,
        data: Dict[str, Any],
        user: str,
        supplier_id: str = None
    ) -> Dict[str, Any]:
        """Cria (supplier_id=None) ou atualiza um fornecedor de milhas."""
        values = self._clean(data)
        if not values['name']:
            return {'ok': False, 'error': 'Nome do fornecedor é obrigatório'}
        if values['payment_type'] not in self.VALID_PAYMENT_TYPES:
            return {'ok': False, 'error': 'Tipo de pagamento inválido. Use: prepaid ou per_use'}

        if supplier_id:
            current = self.supplier_repo.get(supplier_id)
            if not current or current.get('owner_supplier_id') != owner_supplier_id:
                return {'ok': False, 'error': 'Fornecedor não encontrado'}
            return {'ok': True, 'supplier': self.supplier_repo.update_by_id(supplier_id, values)}

        supplier = self.supplier_repo.insert(dict(values, owner_supplier_id=owner_supplier_id))
        if self.audit_service:
            self.audit_service.log(AuditType.SISTEMA.value, user,
                                   f"Fornecedor {values['name']} cadastrado",
                                   supplier['id'], {}, owner_supplier_id)
        return {'ok': True, 'supplier': supplier}

    def delete_supplier(self, owner_supplier_id: str, supplier_id: str) -> Dict[str, Any]:
        current = self.supplier_repo.get(supplier_id)
        if not current or current.get('owner_supplier_id') != owner_supplier_id:
            return {'ok': False, 'error': 'Fornecedor não encontrado'}
        self.supplier_repo.delete_by_id(supplier_id)
        return {'ok': True}
