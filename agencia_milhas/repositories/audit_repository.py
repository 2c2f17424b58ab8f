# ==============================================================================
# REPOSITÓRIO DE AUDITORIA
# ==============================================================================
# Encapsula o acesso a audit.json
# Guardado como lista, mais recentes primeiro: [{log1}, {log2}, ...]
# ==============================================================================

from datetime import datetime
from typing import Any, Dict, List

from agencia_milhas.repositories.base import ListRepository


class AuditRepository(ListRepository):
    """
    Formato de audit.json:
    [
        {
            "type": "VENDA",
            "user": "ana@agencia.com",
            "supplier_id": "...",
            "message": "Venda registrada para Maria (GRU-GIG)",
            "timestamp": "2025-01-01 10:00:00",
            "related_id": "<sale id>",
            "details": {...}
        }
    ]
    """

    FILE_NAME = 'audit.json'

    # Limite para o arquivo não crescer sem controle
    MAX_LOGS = 10000

    def load(self) -> List[Dict[str, Any]]:
        logs = self.get_all()
        return sorted(logs, key=lambda x: x.get('timestamp', ''), reverse=True)

    def save(self, logs: List[Dict[str, Any]]) -> None:
        if len(logs) > self.MAX_LOGS:
            logs = logs[:self.MAX_LOGS]
        self.save_all(logs)

    def log(
        self,
        log_type: str,
        user: str,
        message: str,
        related_id: str = '',
        details: Dict[str, Any] = None,
        supplier_id: str = None
    ) -> Dict[str, Any]:
        """
        Registra um evento de auditoria.

        Args:
            log_type: Tipo (VENDA, PAGAMENTO, CONTA, CPF, ...)
            user: E-mail de quem fez a ação
            message: Mensagem legível
            related_id: ID relacionado (venda, conta, bilhete...)
            details: Dados extras
            supplier_id: Agência dona do evento
        """
        entry = {
            'type': log_type,
            'user': user or 'sistema',
            'supplier_id': supplier_id,
            'message': message,
            'timestamp': datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            'related_id': related_id,
            'details': details or {},
        }
        with self._file_lock:
            logs = self.get_all()
            logs.insert(0, entry)
            self.save(logs)
        return entry
