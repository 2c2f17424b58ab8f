# ==============================================================================
# REPOSITÓRIO DO REGISTRO DE CPFs
# ==============================================================================
# cpf_registry.json: uso de cada CPF por programa de milhas
#   {airline_company_id, cpf_encrypted, full_name, usage_count,
#    first_use_date, last_used_at, status, blocked_until}
# ==============================================================================

from typing import Any, Dict, List, Optional

from agencia_milhas.helpers import only_digits
from agencia_milhas.repositories.base import TableRepository


class CpfRegistryRepository(TableRepository):

    FILE_NAME = 'cpf_registry.json'

    def find_entry(self, airline_company_id: str, cpf: str) -> Optional[Dict[str, Any]]:
        digits = only_digits(cpf)
        for entry in self.get_all():
            if entry.get('airline_company_id') == airline_company_id and entry.get('cpf_encrypted') == digits:
                return entry
        return None

    def cpf_exists(self, airline_company_id: str, cpf: str) -> bool:
        return self.find_entry(airline_company_id, cpf) is not None

    def list_by_airline(self, airline_company_id: str) -> List[Dict[str, Any]]:
        return self.find_all_by('airline_company_id', airline_company_id)
