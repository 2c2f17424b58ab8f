# ==============================================================================
# REPOSITÓRIO DE COMPANHIAS AÉREAS E REGRAS DE PROGRAMA
# ==============================================================================
# airline_companies.json  -> programas de milhas (LATAM, GOL, AZUL...)
# suppliers_airlines.json -> vínculo agência <-> programa
# program_rules.json      -> limite de CPFs e renovação por agência/programa
# ==============================================================================

from typing import Any, Dict, List, Optional

from agencia_milhas.repositories.base import TableRepository, utc_now_iso


class AirlineRepository(TableRepository):
    """Companhias aéreas (programas de milhas)."""

    FILE_NAME = 'airline_companies.json'

    def find_by_code(self, supplier_id: str, code: str) -> Optional[Dict[str, Any]]:
        code = (code or '').strip().upper()
        for airline in self.list_by_supplier(supplier_id):
            if (airline.get('code') or '').upper() == code:
                return airline
        return None

    def find_by_code_or_name(
        self,
        airlines: List[Dict[str, Any]],
        program: str
    ) -> Optional[Dict[str, Any]]:
        """
        Resolve o programa informado numa planilha.
        Casa pelo código exato ou por nome que contenha o texto.
        """
        target = (program or '').strip().upper()
        if not target:
            return None
        for airline in airlines:
            if (airline.get('code') or '').upper() == target:
                return airline
        for airline in airlines:
            if target in (airline.get('name') or '').upper():
                return airline
        return None


class SupplierAirlineRepository(TableRepository):
    """Vínculo entre agência e companhia."""

    FILE_NAME = 'suppliers_airlines.json'

    def link(self, supplier_id: str, airline_id: str) -> None:
        for row in self.list_by_supplier(supplier_id):
            if row.get('airline_company_id') == airline_id:
                return
        self.insert({'supplier_id': supplier_id, 'airline_company_id': airline_id})

    def linked_airline_ids(self, supplier_id: str) -> List[str]:
        return [r['airline_company_id'] for r in self.list_by_supplier(supplier_id)]


class ProgramRuleRepository(TableRepository):
    """Regras de CPF por (agência, companhia)."""

    FILE_NAME = 'program_rules.json'

    def get_rule(self, supplier_id: str, airline_id: str) -> Optional[Dict[str, Any]]:
        for rule in self.list_by_supplier(supplier_id):
            if rule.get('airline_id') == airline_id:
                return rule
        return None

    def upsert(self, supplier_id: str, airline_id: str, values: Dict[str, Any]) -> Dict[str, Any]:
        """Insere ou atualiza a regra; a chave de conflito é (supplier_id, airline_id)."""
        with self._file_lock:
            existing = self.get_rule(supplier_id, airline_id)
            if existing:
                return self.update_by_id(existing['id'], values)
            payload = dict(values, supplier_id=supplier_id, airline_id=airline_id)
            payload.setdefault('created_at', utc_now_iso())
            return self.insert(payload)
