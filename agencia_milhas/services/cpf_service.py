# ==============================================================================
# SERVIÇO DE CPFs - Limite de uso por programa e renovação
# ==============================================================================
# Cada programa de milhas permite emitir para um número limitado de CPFs.
# Regras:
#   - usage_count >= cpf_limit  -> status 'blocked'
#   - renovação 'rolling': libera 1 ano após o primeiro uso
#   - renovação 'annual':  libera em 1º de janeiro do ano seguinte
#   - a regra da agência (program_rules) prevalece sobre a da companhia
# ==============================================================================

import logging
from collections import OrderedDict
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from agencia_milhas.helpers import (
    add_one_year,
    hide_cpf,
    only_digits,
    parse_br_date,
    to_int,
    validate_cpf,
)
from agencia_milhas.models import AuditType, CpfStatus, RenewalType
from agencia_milhas.repositories import (
    AccountCpfRepository,
    AirlineRepository,
    CpfRegistryRepository,
    ProgramRuleRepository,
)
from agencia_milhas.services.audit_service import AuditService

logger = logging.getLogger(__name__)

DEFAULT_CPF_LIMIT = 25
DEFAULT_RENEWAL_TYPE = RenewalType.ANNUAL.value

# Dias de antecedência para sinalizar renovação próxima no calendário
RENEWAL_NEAR_DAYS = 30


class CpfService:
    """
    Registro de uso de CPFs por programa, contagem por conta,
    calendário de renovação e regras de programa.
    """

    def __init__(
        self,
        cpf_repo: CpfRegistryRepository,
        airline_repo: AirlineRepository,
        rule_repo: ProgramRuleRepository,
        account_cpf_repo: AccountCpfRepository,
        audit_service: AuditService = None
    ):
        self.cpf_repo = cpf_repo
        self.airline_repo = airline_repo
        self.rule_repo = rule_repo
        self.account_cpf_repo = account_cpf_repo
        self.audit_service = audit_service

    # =========================================================================
    # REGRAS PURAS
    # =========================================================================

    @staticmethod
    def evaluate_status(usage_count: int, cpf_limit: int) -> str:
        """'blocked' quando o uso atinge o limite, senão 'available'."""
        if usage_count >= cpf_limit:
            return CpfStatus.BLOCKED.value
        return CpfStatus.AVAILABLE.value

    @staticmethod
    def compute_blocked_until(renewal_type: str, first_use: date, today: date = None) -> date:
        """
        Data em que o CPF volta a ficar disponível.

        Args:
            renewal_type: 'rolling' ou 'annual'
            first_use: Data do primeiro uso do CPF no programa
            today: Referência para a renovação anual (padrão: hoje)
        """
        if renewal_type == RenewalType.ROLLING.value:
            return add_one_year(first_use)
        today = today or date.today()
        return date(today.year + 1, 1, 1)

    # =========================================================================
    # REGRAS DE PROGRAMA
    # =========================================================================

    def effective_rule(self, supplier_id: str, airline_id: str) -> Dict[str, Any]:
        """
        Limite e tipo de renovação vigentes para (agência, companhia).
        Ordem: program_rules -> cadastro da companhia -> padrão (25, annual).
        """
        rule = self.rule_repo.get_rule(supplier_id, airline_id) if supplier_id else None
        if rule:
            return {
                'cpf_limit': to_int(rule.get('cpf_limit'), DEFAULT_CPF_LIMIT),
                'renewal_type': rule.get('renewal_type') or DEFAULT_RENEWAL_TYPE,
                'source': 'program_rule',
            }
        airline = self.airline_repo.get(airline_id) or {}
        return {
            'cpf_limit': to_int(airline.get('cpf_limit'), DEFAULT_CPF_LIMIT),
            'renewal_type': airline.get('renewal_type') or DEFAULT_RENEWAL_TYPE,
            'source': 'airline' if airline else 'default',
        }

    def save_program_rule(
        self,
        supplier_id: str,
        airline_id: str,
        cpf_limit: Any,
        renewal_type: str,
        user: str
    ) -> Dict[str, Any]:
        """
        Cria ou atualiza a regra da agência para um programa.
        A chave de conflito é (supplier_id, airline_id).
        """
        if not supplier_id:
            return {'ok': False, 'error': 'Agência não encontrada para o usuário'}
        if not self.airline_repo.get(airline_id):
            return {'ok': False, 'error': 'Companhia aérea não encontrada'}
        limit = to_int(cpf_limit, 0)
        if limit <= 0:
            return {'ok': False, 'error': 'Limite de CPFs deve ser maior que zero'}
        if renewal_type not in (RenewalType.ANNUAL.value, RenewalType.ROLLING.value):
            return {'ok': False, 'error': 'Tipo de renovação inválido. Use: annual ou rolling'}

        rule = self.rule_repo.upsert(supplier_id, airline_id, {
            'cpf_limit': limit,
            'renewal_type': renewal_type,
            'updated_by': user,
        })
        if self.audit_service:
            self.audit_service.log(
                AuditType.CPF.value, user,
                f"Regra de programa atualizada: limite {limit} CPFs, renovação {renewal_type}",
                airline_id, {'cpf_limit': limit, 'renewal_type': renewal_type}, supplier_id
            )
        return {'ok': True, 'rule': rule}

    # =========================================================================
    # USO DE CPF
    # =========================================================================

    def is_blocked(self, airline_id: str, cpf: str, today: date = None) -> bool:
        """True se o CPF está bloqueado no programa e o bloqueio ainda vale."""
        entry = self.cpf_repo.find_entry(airline_id, cpf)
        if not entry or entry.get('status') != CpfStatus.BLOCKED.value:
            return False
        until = parse_br_date(entry.get('blocked_until'))
        today = today or date.today()
        return until is None or until > today

    def register_cpf_usage(
        self,
        supplier_id: str,
        airline_id: str,
        cpf: str,
        full_name: str = '',
        today: date = None
    ) -> Dict[str, Any]:
        """
        Soma um uso ao CPF no programa (cria o registro no primeiro uso)
        e reavalia o status com a regra vigente.

        Returns:
            Registro atualizado
        """
        today = today or date.today()
        digits = only_digits(cpf)
        rule = self.effective_rule(supplier_id, airline_id)
        now = datetime.now(timezone.utc).isoformat()

        entry = self.cpf_repo.find_entry(airline_id, digits)
        if entry and self._block_expired(entry, today):
            entry = self._release(entry)

        if entry is None:
            usage = 1
            first_use = today
            entry = self.cpf_repo.insert({
                'supplier_id': supplier_id,
                'airline_company_id': airline_id,
                'cpf_encrypted': digits,
                'full_name': full_name,
                'usage_count': 0,
                'first_use_date': first_use.isoformat(),
                'status': CpfStatus.AVAILABLE.value,
                'blocked_until': None,
            })
        else:
            usage = to_int(entry.get('usage_count'), 0) + 1
            first_use = parse_br_date(entry.get('first_use_date')) or today

        status = self.evaluate_status(usage, rule['cpf_limit'])
        updates = {
            'usage_count': usage,
            'last_used_at': now,
            'status': status,
            'first_use_date': first_use.isoformat(),
        }
        if full_name and not entry.get('full_name'):
            updates['full_name'] = full_name
        if status == CpfStatus.BLOCKED.value:
            blocked_until = self.compute_blocked_until(rule['renewal_type'], first_use, today)
            updates['blocked_until'] = blocked_until.isoformat()
            if entry.get('status') != CpfStatus.BLOCKED.value and self.audit_service:
                self.audit_service.log_cpf_blocked(
                    airline_id, hide_cpf(digits), blocked_until.strftime('%d/%m/%Y'), supplier_id
                )

        return self.cpf_repo.update_by_id(entry['id'], updates)

    def add_cpf(
        self,
        supplier_id: str,
        airline_id: str,
        cpf: str,
        full_name: str,
        user: str
    ) -> Dict[str, Any]:
        """Cadastro manual de CPF no programa (sem contar uso)."""
        if not validate_cpf(cpf):
            return {'ok': False, 'error': 'CPF inválido'}
        if not self.airline_repo.get(airline_id):
            return {'ok': False, 'error': 'Companhia aérea não encontrada'}
        if self.cpf_repo.cpf_exists(airline_id, cpf):
            return {'ok': False, 'error': 'CPF já cadastrado neste programa'}

        entry = self.cpf_repo.insert({
            'supplier_id': supplier_id,
            'airline_company_id': airline_id,
            'cpf_encrypted': only_digits(cpf),
            'full_name': (full_name or '').strip(),
            'usage_count': 0,
            'first_use_date': None,
            'last_used_at': None,
            'status': CpfStatus.AVAILABLE.value,
            'blocked_until': None,
        })
        if self.audit_service:
            self.audit_service.log(AuditType.CPF.value, user,
                                   f"CPF {hide_cpf(cpf)} cadastrado manualmente",
                                   airline_id, {'entry_id': entry['id']}, supplier_id)
        return {'ok': True, 'entry': entry}

    def _block_expired(self, entry: Dict[str, Any], today: date) -> bool:
        if entry.get('status') != CpfStatus.BLOCKED.value:
            return False
        until = parse_br_date(entry.get('blocked_until'))
        return until is not None and until <= today

    def _release(self, entry: Dict[str, Any]) -> Dict[str, Any]:
        return self.cpf_repo.update_by_id(entry['id'], {
            'status': CpfStatus.AVAILABLE.value,
            'usage_count': 0,
            'blocked_until': None,
            'first_use_date': None,
        })

    def release_expired_blocks(self, supplier_id: str = None, today: date = None) -> int:
        """
        Volta para 'available' os CPFs cujo bloqueio já venceu.
        Com supplier_id, só os registros daquela agência.

        Returns:
            Quantidade de registros liberados
        """
        today = today or date.today()
        released = 0
        entries = self.cpf_repo.list_by_supplier(supplier_id) if supplier_id else self.cpf_repo.get_all()
        for entry in entries:
            if self._block_expired(entry, today):
                self._release(entry)
                released += 1
        if released:
            logger.info("[CPF] %d bloqueio(s) vencido(s) liberado(s)", released)
        return released

    # =========================================================================
    # CONTAGEM POR CONTA
    # =========================================================================

    def register_account_cpf(self, account_id: str, cpf: str) -> bool:
        return self.account_cpf_repo.add(account_id, cpf)

    def count_distinct_cpfs(self, account_id: str) -> int:
        """CPFs distintos já usados na conta (um CPF repetido conta uma vez)."""
        return self.account_cpf_repo.count_distinct(account_id)

    # =========================================================================
    # CONSULTAS
    # =========================================================================

    def list_cpfs(self, airline_id: str) -> List[Dict[str, Any]]:
        """Registros do programa com o CPF mascarado."""
        result = []
        for entry in self.cpf_repo.list_by_airline(airline_id):
            public = dict(entry)
            public['cpf_masked'] = hide_cpf(entry.get('cpf_encrypted'))
            public.pop('cpf_encrypted', None)
            result.append(public)
        return sorted(result, key=lambda e: (-to_int(e.get('usage_count')), e.get('full_name') or ''))

    def renewal_calendar(
        self,
        supplier_id: str,
        airline_id: Optional[str] = None,
        today: date = None
    ) -> List[Dict[str, Any]]:
        """
        CPFs bloqueados agrupados pelo mês de liberação (AAAA-MM).

        Cada item traz renewal_near=True quando a liberação ocorre
        em até RENEWAL_NEAR_DAYS dias.
        """
        today = today or date.today()
        groups: Dict[str, List[Dict[str, Any]]] = OrderedDict()

        entries = [
            e for e in self.cpf_repo.list_by_supplier(supplier_id)
            if e.get('blocked_until') and (airline_id is None or e.get('airline_company_id') == airline_id)
        ]
        entries.sort(key=lambda e: e['blocked_until'])

        for entry in entries:
            until = parse_br_date(entry['blocked_until'])
            if until is None:
                continue
            days_left = (until - today).days
            groups.setdefault(until.strftime('%Y-%m'), []).append({
                'id': entry['id'],
                'airline_company_id': entry.get('airline_company_id'),
                'full_name': entry.get('full_name'),
                'cpf_masked': hide_cpf(entry.get('cpf_encrypted')),
                'blocked_until': until.isoformat(),
                'days_left': days_left,
                'renewal_near': 0 <= days_left <= RENEWAL_NEAR_DAYS,
            })

        return [{'month': month, 'entries': items} for month, items in groups.items()]
