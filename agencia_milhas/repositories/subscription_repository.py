# ==============================================================================
# REPOSITÓRIO DE ASSINATURAS
# ==============================================================================
# billing_subscriptions.json: uma assinatura por usuário (chave user_id)
#   {user_id, email, stripe_customer_id, stripe_subscription_id,
#    stripe_price_id, plan, status, renewal_date}
# ==============================================================================

from typing import Any, Dict, Optional

from agencia_milhas.repositories.base import TableRepository


class SubscriptionRepository(TableRepository):

    FILE_NAME = 'billing_subscriptions.json'

    def get_by_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        return self.find_by('user_id', user_id)

    def get_by_customer(self, customer_id: str) -> Optional[Dict[str, Any]]:
        if not customer_id:
            return None
        return self.find_by('stripe_customer_id', customer_id)

    def upsert_by_user(self, user_id: str, values: Dict[str, Any]) -> Dict[str, Any]:
        with self._file_lock:
            existing = self.get_by_user(user_id)
            if existing:
                return self.update_by_id(existing['id'], values)
            return self.insert(dict(values, user_id=user_id))

    def update_by_customer(self, customer_id: str, values: Dict[str, Any]) -> bool:
        """Atualiza a assinatura do cliente; False se não houver nenhuma."""
        existing = self.get_by_customer(customer_id)
        if not existing:
            return False
        self.update_by_id(existing['id'], values)
        return True
