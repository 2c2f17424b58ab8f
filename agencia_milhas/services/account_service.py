# ==============================================================================
# SERVIÇO DE CONTAS DE MILHAS
# ==============================================================================
# Contas, saldo, contagem de CPFs e movimentações manuais.
# ==============================================================================

import logging
from typing import Any, Dict, List, Optional

from agencia_milhas.helpers import only_digits, to_float, to_int
from agencia_milhas.models import AccountStatus, AuditType, MovementType
from agencia_milhas.repositories import (
    AccountRepository,
    AirlineRepository,
    MovementRepository,
)
from agencia_milhas.services.audit_service import AuditService
from agencia_milhas.services.cpf_service import CpfService

logger = logging.getLogger(__name__)

# Saldo abaixo do qual a conta aparece no alerta do painel
LOW_BALANCE_THRESHOLD = 50000


class AccountService:
    """
    Responsabilidades:
    - CRUD de contas de milhas (por agência)
    - update_account_balance / update_account_cpf_count
    - Créditos e débitos manuais com reversão ao excluir
    """

    def __init__(
        self,
        account_repo: AccountRepository,
        airline_repo: AirlineRepository,
        movement_repo: MovementRepository,
        cpf_service: CpfService,
        audit_service: AuditService = None
    ):
        self.account_repo = account_repo
        self.airline_repo = airline_repo
        self.movement_repo = movement_repo
        self.cpf_service = cpf_service
        self.audit_service = audit_service

    # =========================================================================
    # CONTAS
    # =========================================================================

    def list_accounts(self, supplier_id: str, status: str = None) -> List[Dict[str, Any]]:
        accounts = self.account_repo.list_by_supplier(supplier_id)
        if status:
            accounts = [a for a in accounts if a.get('status') == status]
        airlines = {a['id']: a for a in self.airline_repo.list_by_supplier(supplier_id)}
        result = []
        for account in accounts:
            row = dict(account)
            airline = airlines.get(account.get('airline_company_id')) or {}
            row['airline_name'] = airline.get('name', '')
            row['airline_code'] = airline.get('code', '')
            result.append(row)
        return sorted(result, key=lambda a: (a['airline_name'], a.get('account_number') or ''))

    def get_account(self, supplier_id: str, account_id: str) -> Optional[Dict[str, Any]]:
        account = self.account_repo.get(account_id)
        if account and account.get('supplier_id') == supplier_id:
            return account
        return None

    def _clean(self, data: Dict[str, Any]) -> Dict[str, Any]:
        values = {}
        for key in ('account_number', 'account_holder_name', 'notes'):
            if key in data:
                values[key] = str(data.get(key) or '').strip()
        if 'account_holder_cpf' in data:
            values['account_holder_cpf'] = only_digits(data.get('account_holder_cpf'))
        if 'airline_company_id' in data:
            values['airline_company_id'] = data.get('airline_company_id') or ''
        if 'balance' in data:
            values['balance'] = to_float(data.get('balance'))
        if 'cost_per_mile' in data:
            values['cost_per_mile'] = to_float(data.get('cost_per_mile'))
        if 'cpf_limit' in data:
            values['cpf_limit'] = to_int(data.get('cpf_limit'), 25)
        if 'status' in data:
            values['status'] = data.get('status') or AccountStatus.ACTIVE.value
        return values

    def create_account(self, supplier_id: str, data: Dict[str, Any], user: str) -> Dict[str, Any]:
        values = self._clean(data)
        if not values.get('account_number'):
            return {'ok': False, 'error': 'Número da conta é obrigatório'}
        airline = self.airline_repo.get(values.get('airline_company_id', ''))
        if not airline or airline.get('supplier_id') != supplier_id:
            return {'ok': False, 'error': 'Programa de milhas não encontrado'}
        if values.get('balance', 0) < 0:
            return {'ok': False, 'error': 'Saldo não pode ser negativo'}
        if values.get('status', AccountStatus.ACTIVE.value) not in (AccountStatus.ACTIVE.value, AccountStatus.INACTIVE.value):
            return {'ok': False, 'error': 'Status inválido'}

        values.setdefault('balance', 0.0)
        values.setdefault('cost_per_mile', to_float(airline.get('cost_per_mile'), 0.029))
        values.setdefault('cpf_limit', to_int(airline.get('cpf_limit'), 25))
        values.setdefault('status', AccountStatus.ACTIVE.value)
        account = self.account_repo.insert(dict(values, supplier_id=supplier_id, cpf_count=0))

        if self.audit_service:
            self.audit_service.log(AuditType.CONTA.value, user, f"Conta {account['account_number']} cadastrada",
                                   account['id'], {'balance': account['balance']}, supplier_id)
        return {'ok': True, 'account': account}

    def update_account(self, supplier_id: str, account_id: str, data: Dict[str, Any], user: str) -> Dict[str, Any]:
        if not self.get_account(supplier_id, account_id):
            return {'ok': False, 'error': 'Conta não encontrada'}
        values = self._clean(data)
        # Saldo só muda por venda ou movimentação
        values.pop('balance', None)
        if 'status' in values and values['status'] not in (AccountStatus.ACTIVE.value, AccountStatus.INACTIVE.value):
            return {'ok': False, 'error': 'Status inválido'}
        return {'ok': True, 'account': self.account_repo.update_by_id(account_id, values)}

    def delete_account(self, supplier_id: str, account_id: str, user: str) -> Dict[str, Any]:
        account = self.get_account(supplier_id, account_id)
        if not account:
            return {'ok': False, 'error': 'Conta não encontrada'}
        self.account_repo.delete_by_id(account_id)
        if self.audit_service:
            self.audit_service.log(AuditType.CONTA.value, user, f"Conta {account.get('account_number')} excluída",
                                   account_id, {}, supplier_id)
        return {'ok': True}

    # =========================================================================
    # SALDO E CPFs (equivalentes às funções do banco)
    # =========================================================================

    def update_account_balance(self, account_id: str, miles_delta: float) -> Optional[Dict[str, Any]]:
        return self.account_repo.update_account_balance(account_id, miles_delta)

    def update_account_cpf_count(self, account_id: str) -> int:
        """Recalcula cpf_count como a quantidade de CPFs distintos da conta."""
        count = self.cpf_service.count_distinct_cpfs(account_id)
        self.account_repo.update_account_cpf_count(account_id, count)
        return count

    def low_balance_accounts(self, supplier_id: str, threshold: float = LOW_BALANCE_THRESHOLD) -> List[Dict[str, Any]]:
        """Contas ativas com saldo abaixo do limite."""
        return [
            a for a in self.list_accounts(supplier_id, status=AccountStatus.ACTIVE.value)
            if to_float(a.get('balance')) < threshold
        ]

    # =========================================================================
    # MOVIMENTAÇÕES
    # =========================================================================

    def add_movement(
        self,
        supplier_id: str,
        account_id: str,
        movement_type: str,
        amount: Any,
        note: str,
        user: str
    ) -> Dict[str, Any]:
        """
        Registra crédito ou débito manual e ajusta o saldo.
        Débitos maiores que o saldo são recusados.
        """
        account = self.get_account(supplier_id, account_id)
        if not account:
            return {'ok': False, 'error': 'Conta não encontrada'}
        if movement_type not in (MovementType.CREDIT.value, MovementType.DEBIT.value):
            return {'ok': False, 'error': 'Tipo inválido. Use: credit ou debit'}
        miles = to_float(amount)
        if miles <= 0:
            return {'ok': False, 'error': 'A quantidade de milhas deve ser maior que zero'}
        if movement_type == MovementType.DEBIT.value and miles > to_float(account.get('balance')):
            return {'ok': False, 'error': 'Saldo insuficiente para o débito'}

        delta = miles if movement_type == MovementType.CREDIT.value else -miles
        movement = self.movement_repo.insert({
            'supplier_id': supplier_id,
            'account_id': account_id,
            'type': movement_type,
            'amount': miles,
            'note': (note or '').strip(),
            'created_by': user,
        })
        updated = self.account_repo.update_account_balance(account_id, delta)

        if self.audit_service:
            self.audit_service.log_movement(user, account, movement)
        return {'ok': True, 'movement': movement, 'balance': updated['balance']}

    def delete_movement(self, supplier_id: str, movement_id: str, user: str) -> Dict[str, Any]:
        """Exclui a movimentação e desfaz o efeito no saldo."""
        movement = self.movement_repo.get(movement_id)
        if not movement or movement.get('supplier_id') != supplier_id:
            return {'ok': False, 'error': 'Movimentação não encontrada'}
        delta = -movement['amount'] if movement['type'] == MovementType.CREDIT.value else movement['amount']
        if delta < 0:
            account = self.account_repo.get(movement['account_id'])
            if account and to_float(account.get('balance')) + delta < 0:
                return {'ok': False, 'error': 'Saldo insuficiente para desfazer o crédito'}
        self.movement_repo.delete_by_id(movement_id)
        updated = self.account_repo.update_account_balance(movement['account_id'], delta)
        logger.info("[MOVIMENTAÇÃO] %s excluída por %s", movement_id, user)
        return {'ok': True, 'balance': updated['balance'] if updated else None}

    def list_movements(self, supplier_id: str, account_id: str = None) -> List[Dict[str, Any]]:
        if account_id:
            rows = self.movement_repo.list_by_account(account_id)
            return [r for r in rows if r.get('supplier_id') == supplier_id]
        rows = self.movement_repo.list_by_supplier(supplier_id)
        return sorted(rows, key=lambda r: r.get('created_at', ''), reverse=True)
