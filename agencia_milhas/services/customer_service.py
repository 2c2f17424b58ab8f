# ==============================================================================
# SERVIÇO DE CLIENTES
# ==============================================================================
# Cadastro de clientes da agência (um por CPF) e histórico de compras.
#
# TOTAIS:
#   Cada venda registrada soma em total_purchases / total_spent e atualiza
#   last_purchase_at. O cliente é achado pelo CPF da venda; sem CPF, pelo
#   nome. Venda com CPF de cliente novo cria o cadastro.
# ==============================================================================

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from agencia_milhas.helpers import format_date_iso, only_digits, parse_br_date, to_float, validate_cpf
from agencia_milhas.models import AuditType
from agencia_milhas.repositories import CustomerRepository, SalesRepository
from agencia_milhas.services.audit_service import AuditService

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 10
PROFILE_FIELDS = ('name', 'rg', 'birth_date', 'phone', 'email')


class CustomerService:
    """
    Responsabilidades:
    - Cadastrar/atualizar clientes (chave: CPF dentro da agência)
    - Buscar clientes por nome, telefone ou e-mail
    - Montar o detalhe do cliente com as compras
    - Somar cada venda nos totais do cliente
    """

    def __init__(
        self,
        customer_repo: CustomerRepository,
        sales_repo: SalesRepository,
        audit_service: AuditService = None
    ):
        self.customer_repo = customer_repo
        self.sales_repo = sales_repo
        self.audit_service = audit_service

    # =========================================================================
    # CADASTRO
    # =========================================================================

    def _profile(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Campos de perfil limpos; só os presentes em data."""
        profile = {}
        for field in PROFILE_FIELDS:
            if field not in data:
                continue
            value = str(data.get(field) or '').strip()
            if field == 'email':
                value = value.lower()
            elif field == 'phone':
                value = only_digits(value)
            profile[field] = value or None
        return profile

    def save_customer(self, supplier_id: str, data: Dict[str, Any], user: str) -> Dict[str, Any]:
        """
        Cria o cliente ou atualiza o existente com o mesmo CPF.

        Returns:
            {'ok': True, 'customer', 'created'} ou {'ok': False, 'error'}
        """
        name = str(data.get('name') or '').strip()
        if not name:
            return {'ok': False, 'error': 'Nome do cliente é obrigatório'}
        cpf = only_digits(data.get('cpf'))
        if not validate_cpf(cpf):
            return {'ok': False, 'error': 'CPF inválido'}

        profile = self._profile(data)
        profile['name'] = name
        if profile.get('birth_date'):
            birth = parse_br_date(profile['birth_date'])
            if not birth:
                return {'ok': False, 'error': 'Data de nascimento inválida (use DD/MM/AAAA)'}
            profile['birth_date'] = format_date_iso(birth)

        existing = self.customer_repo.find_by_cpf(supplier_id, cpf)
        if existing:
            customer = self.customer_repo.update_by_id(existing['id'], profile)
            return {'ok': True, 'customer': customer, 'created': False}

        customer = self.customer_repo.insert(dict(
            {field: None for field in PROFILE_FIELDS},
            **profile,
            supplier_id=supplier_id,
            cpf_encrypted=cpf,
            total_purchases=0,
            total_spent=0.0,
            last_purchase_at=None,
        ))
        if self.audit_service:
            self.audit_service.log(AuditType.CLIENTE.value, user, f"Cliente {name} cadastrado",
                                   customer['id'], {}, supplier_id)
        logger.info("[CLIENTE] %s cadastrado por %s", customer['id'], user)
        return {'ok': True, 'customer': customer, 'created': True}

    def update_customer(self, supplier_id: str, customer_id: str, data: Dict[str, Any], user: str) -> Dict[str, Any]:
        """Atualiza o perfil; CPF e totais não mudam por aqui."""
        customer = self.get_customer(supplier_id, customer_id)
        if not customer:
            return {'ok': False, 'error': 'Cliente não encontrado'}
        profile = self._profile(data)
        if 'name' in profile and not profile['name']:
            return {'ok': False, 'error': 'Nome do cliente é obrigatório'}
        if profile.get('birth_date'):
            birth = parse_br_date(profile['birth_date'])
            if not birth:
                return {'ok': False, 'error': 'Data de nascimento inválida (use DD/MM/AAAA)'}
            profile['birth_date'] = format_date_iso(birth)
        updated = self.customer_repo.update_by_id(customer_id, profile)
        logger.info("[CLIENTE] %s atualizado por %s", customer_id, user)
        return {'ok': True, 'customer': updated}

    def delete_customer(self, supplier_id: str, customer_id: str, user: str) -> Dict[str, Any]:
        customer = self.get_customer(supplier_id, customer_id)
        if not customer:
            return {'ok': False, 'error': 'Cliente não encontrado'}
        self.customer_repo.delete_by_id(customer_id)
        logger.info("[CLIENTE] %s excluído por %s", customer_id, user)
        return {'ok': True}

    # =========================================================================
    # CONSULTA
    # =========================================================================

    def get_customer(self, supplier_id: str, customer_id: str) -> Optional[Dict[str, Any]]:
        customer = self.customer_repo.get(customer_id)
        if not customer or customer.get('supplier_id') != supplier_id:
            return None
        return customer

    def list_customers(self, supplier_id: str, search: str = None) -> List[Dict[str, Any]]:
        """Clientes por nome; search filtra por nome, telefone ou e-mail."""
        customers = self.customer_repo.load(supplier_id)
        term = (search or '').strip().lower()
        if not term:
            return customers
        digits = only_digits(term)
        return [
            c for c in customers
            if term in (c.get('name') or '').lower()
            or term in (c.get('email') or '')
            or (digits and digits in (c.get('phone') or ''))
        ]

    def search_customers(self, supplier_id: str, term: str) -> List[Dict[str, Any]]:
        """Autocompletar do formulário de venda (nome ou e-mail)."""
        term = (term or '').strip().lower()
        if not term:
            return []
        return [
            c for c in self.customer_repo.load(supplier_id)
            if term in (c.get('name') or '').lower() or term in (c.get('email') or '')
        ][:SEARCH_LIMIT]

    def customer_sales(self, supplier_id: str, customer: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Vendas do cliente (pelo CPF), mais recentes primeiro."""
        cpf = customer.get('cpf_encrypted')
        return [s for s in self.sales_repo.load(supplier_id) if cpf and s.get('client_cpf_encrypted') == cpf]

    def get_customer_detail(self, supplier_id: str, customer_id: str) -> Optional[Dict[str, Any]]:
        """
        Cliente com o histórico de compras.

        Returns:
            {'customer', 'sales', 'stats': {total_sales, total_spent, last_purchase_at}} ou None
        """
        customer = self.get_customer(supplier_id, customer_id)
        if not customer:
            return None
        sales = self.customer_sales(supplier_id, customer)
        spent = round(sum(to_float(s.get('price_total')) for s in sales), 2)
        return {
            'customer': customer,
            'sales': sales,
            'stats': {
                'total_sales': len(sales) or customer.get('total_purchases') or 0,
                'total_spent': spent or to_float(customer.get('total_spent')),
                'last_purchase_at': customer.get('last_purchase_at') or (sales[0].get('created_at') if sales else None),
            },
        }

    # =========================================================================
    # TOTAIS
    # =========================================================================

    def record_purchase(self, supplier_id: str, sale: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Soma a venda nos totais do cliente.

        Returns:
            Cliente atualizado, ou None se não houver cliente para a venda
        """
        cpf = sale.get('client_cpf_encrypted')
        customer = self.customer_repo.find_by_cpf(supplier_id, cpf) if cpf else None
        if customer is None and not cpf:
            customer = self.customer_repo.find_by_name(supplier_id, sale.get('client_name'))
        if customer is None:
            if not validate_cpf(cpf):
                return None
            customer = self.customer_repo.insert({
                'supplier_id': supplier_id,
                'name': sale.get('client_name'),
                'cpf_encrypted': cpf,
                'rg': None,
                'birth_date': None,
                'phone': only_digits(sale.get('client_contact')) or None,
                'email': None,
                'total_purchases': 0,
                'total_spent': 0.0,
                'last_purchase_at': None,
            })

        return self.customer_repo.update_by_id(customer['id'], {
            'total_purchases': int(customer.get('total_purchases') or 0) + 1,
            'total_spent': round(to_float(customer.get('total_spent')) + to_float(sale.get('price_total')), 2),
            'last_purchase_at': sale.get('created_at') or datetime.now(timezone.utc).isoformat(),
        })
