# ==============================================================================
# SERVIÇO DE FORMAS DE PAGAMENTO E JUROS
# ==============================================================================

import logging
from typing import Any, Dict, List, Optional

from agencia_milhas.helpers import parse_br_number, to_int
from agencia_milhas.repositories import InterestConfigRepository, PaymentMethodRepository
from agencia_milhas.services.calculator import normalize_rates

logger = logging.getLogger(__name__)

METHOD_TYPES = ('pix', 'credit_card', 'debit_card', 'boleto', 'bank_transfer', 'cash', 'other')
PAYMENT_TYPES = ('debit', 'credit')
INTEREST_TYPES = ('total', 'per_installment')


class PaymentMethodService:
    """
    Responsabilidades:
    - Formas de pagamento exibidas nos orçamentos (ordenadas por display_order)
    - Configuração de juros de débito e crédito
    """

    def __init__(self, method_repo: PaymentMethodRepository, interest_repo: InterestConfigRepository):
        self.method_repo = method_repo
        self.interest_repo = interest_repo

    # =========================================================================
    # FORMAS DE PAGAMENTO
    # =========================================================================

    def list_methods(self, supplier_id: str, only_active: bool = False) -> List[Dict[str, Any]]:
        return self.method_repo.load(supplier_id, only_active=only_active)

    def _clean(self, data: Dict[str, Any]) -> Dict[str, Any]:
        values = {}
        for key in ('method_name', 'description', 'additional_info'):
            if key in data:
                values[key] = str(data.get(key) or '').strip()
        if 'method_type' in data:
            values['method_type'] = str(data.get('method_type') or '').strip().lower()
        if 'display_order' in data:
            values['display_order'] = to_int(data.get('display_order'), 0)
        if 'is_active' in data:
            values['is_active'] = bool(data.get('is_active'))
        return values

    def _get(self, supplier_id: str, method_id: str) -> Optional[Dict[str, Any]]:
        method = self.method_repo.get(method_id)
        if method and method.get('supplier_id') == supplier_id:
            return method
        return None

    def create_method(self, supplier_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        values = self._clean(data)
        if not values.get('method_name'):
            return {'ok': False, 'error': 'Nome da forma de pagamento é obrigatório'}
        if values.get('method_type') not in METHOD_TYPES:
            return {'ok': False, 'error': f"Tipo inválido. Use: {', '.join(METHOD_TYPES)}"}
        values.setdefault('is_active', True)
        values.setdefault('display_order', len(self.method_repo.list_by_supplier(supplier_id)))
        return {'ok': True, 'method': self.method_repo.insert(dict(values, supplier_id=supplier_id))}

    def update_method(self, supplier_id: str, method_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        if not self._get(supplier_id, method_id):
            return {'ok': False, 'error': 'Forma de pagamento não encontrada'}
        values = self._clean(data)
        if 'method_type' in values and values['method_type'] not in METHOD_TYPES:
            return {'ok': False, 'error': f"Tipo inválido. Use: {', '.join(METHOD_TYPES)}"}
        return {'ok': True, 'method': self.method_repo.update_by_id(method_id, values)}

    def delete_method(self, supplier_id: str, method_id: str) -> Dict[str, Any]:
        if not self._get(supplier_id, method_id):
            return {'ok': False, 'error': 'Forma de pagamento não encontrada'}
        self.method_repo.delete_by_id(method_id)
        return {'ok': True}

    # =========================================================================
    # JUROS
    # =========================================================================

    def get_interest_config(self, supplier_id: str, payment_type: str) -> Optional[Dict[str, Any]]:
        return self.interest_repo.get_active(supplier_id, payment_type)

    def save_interest_config(self, supplier_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Cria ou substitui a configuração de juros de um tipo de pagamento.

        Taxas aceitam vírgula ("12,5") e as chaves por parcela são
        convertidas para inteiro.
        """
        payment_type = data.get('payment_type')
        if payment_type not in PAYMENT_TYPES:
            return {'ok': False, 'error': 'Tipo de pagamento inválido. Use: debit ou credit'}
        interest_type = data.get('interest_type') or 'total'
        if interest_type not in INTEREST_TYPES:
            return {'ok': False, 'error': 'Tipo de juros inválido. Use: total ou per_installment'}

        rate = parse_br_number(data.get('interest_rate'))
        if rate < 0:
            return {'ok': False, 'error': 'Taxa de juros não pode ser negativa'}

        values = {
            'payment_type': payment_type,
            'interest_type': interest_type,
            'interest_rate': rate,
            # JSON só guarda chaves texto; normalize_rates converte de volta na leitura
            'per_installment_rates': {str(k): v for k, v in normalize_rates(data.get('per_installment_rates')).items()},
            'max_installments': to_int(data.get('max_installments'), 12),
            'is_active': bool(data.get('is_active', True)),
        }

        existing = [r for r in self.interest_repo.list_by_supplier(supplier_id) if r.get('payment_type') == payment_type]
        if existing:
            config = self.interest_repo.update_by_id(existing[0]['id'], values)
        else:
            config = self.interest_repo.insert(dict(values, supplier_id=supplier_id))
        logger.info("[JUROS] Configuração %s salva para a agência %s", payment_type, supplier_id)
        return {'ok': True, 'config': config}
