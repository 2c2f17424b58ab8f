# ==============================================================================
# SERVIÇO DE ASSINATURAS (webhook de pagamentos)
# ==============================================================================
# Recebe os eventos do provedor de pagamentos e mantém billing_subscriptions.
#
# ASSINATURA DO WEBHOOK (cabeçalho Stripe-Signature):
#   t=<timestamp>,v1=<hex>
#   v1 = HMAC-SHA256(secret, "<timestamp>.<corpo cru>"), tolerância de 5 min
#
# EVENTOS:
#   checkout.session.completed      -> cria usuário se preciso + upsert
#   customer.subscription.created   -> status/plano pelo customer id
#   customer.subscription.updated   -> status/plano pelo customer id
#   customer.subscription.deleted   -> cancelled
#   invoice.payment_failed          -> past_due
#
# CHECKOUT E PORTAL:
#   Sessões criadas na API de pagamentos com STRIPE_SECRET_KEY; o checkout
#   só informa o e-mail (a tabela de preços escolhe o plano).
# ==============================================================================

import hashlib
import hmac
import logging
import secrets
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, Optional

import stripe
from werkzeug.security import generate_password_hash

from agencia_milhas.models import SubscriptionStatus, UserRole
from agencia_milhas.repositories import SubscriptionRepository, UserRepository

logger = logging.getLogger(__name__)

SIGNATURE_TOLERANCE_SECONDS = 300
RENEWAL_DAYS = 30
DEFAULT_PLAN = 'pro'

STATUS_MAP = {
    'trialing': SubscriptionStatus.TRIALING.value,
    'active': SubscriptionStatus.ACTIVE.value,
    'past_due': SubscriptionStatus.PAST_DUE.value,
    'canceled': SubscriptionStatus.CANCELLED.value,
    'unpaid': SubscriptionStatus.SUSPENDED.value,
    'incomplete': SubscriptionStatus.GRACE_PERIOD.value,
    'incomplete_expired': SubscriptionStatus.CANCELLED.value,
}

ACCESS_STATUSES = (SubscriptionStatus.ACTIVE.value, SubscriptionStatus.TRIALING.value)


class WebhookSignatureError(Exception):
    """Cabeçalho de assinatura ausente, malformado, expirado ou inválido."""


def map_status(provider_status: Optional[str]) -> str:
    """Status do provedor -> status interno (desconhecido vira suspended)."""
    return STATUS_MAP.get(provider_status or '', SubscriptionStatus.SUSPENDED.value)


def plan_from_price(price_id: Optional[str]) -> str:
    # Todos os preços correspondem ao plano pro por enquanto
    return DEFAULT_PLAN


def sign_payload(payload: bytes, secret: str, timestamp: int) -> str:
    """Gera o cabeçalho de assinatura (usado também nos testes)."""
    signed = f"{timestamp}.".encode('utf-8') + payload
    digest = hmac.new(secret.encode('utf-8'), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def verify_signature(
    payload: bytes,
    header: Optional[str],
    secret: Optional[str],
    tolerance: int = SIGNATURE_TOLERANCE_SECONDS,
    now: Optional[float] = None
) -> None:
    """
    Valida o cabeçalho Stripe-Signature.

    Raises:
        WebhookSignatureError: se a assinatura não conferir
    """
    if not header or not secret:
        raise WebhookSignatureError('Assinatura ou segredo do webhook ausente')

    timestamp = None
    signatures = []
    for part in header.split(','):
        key, _, value = part.strip().partition('=')
        if key == 't':
            timestamp = value
        elif key == 'v1':
            signatures.append(value)

    if not timestamp or not signatures:
        raise WebhookSignatureError('Cabeçalho de assinatura malformado')
    try:
        ts = int(timestamp)
    except ValueError:
        raise WebhookSignatureError('Timestamp da assinatura inválido')

    current = now if now is not None else time.time()
    if abs(current - ts) > tolerance:
        raise WebhookSignatureError('Assinatura expirada')

    expected = sign_payload(payload, secret, ts).split('v1=', 1)[1]
    if not any(hmac.compare_digest(expected, sig) for sig in signatures):
        raise WebhookSignatureError('Assinatura inválida')


class BillingService:
    """
    Responsabilidades:
    - Processar eventos do webhook
    - Guardar status/plano da assinatura por usuário
    - Decidir se um usuário tem acesso (has_access)
    - Abrir sessões de checkout e do portal do cliente
    """

    def __init__(
        self,
        subscription_repo: SubscriptionRepository,
        user_repo: UserRepository,
        always_active_emails: Iterable[str] = (),
        secret_key: Optional[str] = None,
        client: Any = None
    ):
        self.subscription_repo = subscription_repo
        self.user_repo = user_repo
        self.always_active_emails = {e.strip().lower() for e in always_active_emails if e}
        self.secret_key = secret_key
        self._client = client

    @property
    def configured(self) -> bool:
        return self._client is not None or bool(self.secret_key)

    @property
    def client(self) -> Any:
        """Módulo stripe (ou um substituto com a mesma interface)."""
        return self._client if self._client is not None else stripe

    def _fetch_subscription(self, subscription_id: Optional[str]) -> Optional[Dict[str, Any]]:
        """Busca a assinatura na API; None se não configurado ou em erro."""
        if not subscription_id or not self.configured:
            return None
        try:
            return self.client.Subscription.retrieve(subscription_id, api_key=self.secret_key)
        except stripe.StripeError as e:
            logger.error("[ASSINATURA] Falha ao buscar a assinatura %s: %s", subscription_id, e)
            return None

    # =========================================================================
    # EVENTOS
    # =========================================================================

    def _ensure_user(self, email: str) -> str:
        """Cria o usuário (sem agência, senha aleatória) se ainda não existir."""
        email = email.strip().lower()
        if not self.user_repo.user_exists(email):
            self.user_repo.create_user(
                email,
                generate_password_hash(secrets.token_urlsafe(24)),
                UserRole.SUPPLIER_OWNER.value,
                None,
                email.split('@')[0],
            )
            logger.info("[ASSINATURA] Usuário %s criado pelo checkout", email)
        return email

    @staticmethod
    def _price_id(subscription: Dict[str, Any]) -> Optional[str]:
        items = ((subscription.get('items') or {}).get('data') or [])
        if items:
            return (items[0].get('price') or {}).get('id')
        return None

    def _checkout_completed(self, session: Dict[str, Any]) -> str:
        email = session.get('customer_email') or (session.get('customer_details') or {}).get('email')
        if not email:
            logger.error("[ASSINATURA] Checkout sem e-mail, evento ignorado")
            return 'ignored'

        user_id = self._ensure_user(email)

        # A sessão traz a assinatura expandida ou só o id; com o id, busca na
        # API. Se a busca falhar, o checkout concluído vale como ativa.
        subscription = session.get('subscription')
        if not isinstance(subscription, dict):
            subscription = self._fetch_subscription(subscription) or {'id': subscription}
        subscription_id = subscription.get('id')
        price_id = self._price_id(subscription)
        status = map_status(subscription.get('status') or 'active')

        renewal = datetime.now(timezone.utc) + timedelta(days=RENEWAL_DAYS)
        self.subscription_repo.upsert_by_user(user_id, {
            'email': user_id,
            'billing_email': email,
            'stripe_customer_id': session.get('customer'),
            'stripe_subscription_id': subscription_id,
            'stripe_price_id': price_id,
            'plan': plan_from_price(price_id),
            'status': status,
            'renewal_date': renewal.isoformat(),
        })
        return 'processed'

    def _update_by_customer(self, customer_id: Optional[str], values: Dict[str, Any]) -> str:
        if not self.subscription_repo.update_by_customer(customer_id, values):
            logger.warning("[ASSINATURA] Nenhuma assinatura para o cliente %s", customer_id)
            return 'ignored'
        return 'processed'

    def handle_event(self, event: Dict[str, Any]) -> str:
        """
        Aplica um evento do webhook.

        Returns:
            'processed' ou 'ignored'
        """
        event_type = event.get('type', '')
        obj = (event.get('data') or {}).get('object') or {}
        logger.info("[ASSINATURA] Evento recebido: %s", event_type)

        if event_type == 'checkout.session.completed':
            return self._checkout_completed(obj)

        if event_type in ('customer.subscription.created', 'customer.subscription.updated'):
            return self._update_by_customer(obj.get('customer'), {
                'status': map_status(obj.get('status')),
                'plan': plan_from_price(self._price_id(obj)),
            })

        if event_type == 'customer.subscription.deleted':
            return self._update_by_customer(obj.get('customer'), {
                'status': SubscriptionStatus.CANCELLED.value,
            })

        if event_type == 'invoice.payment_failed':
            return self._update_by_customer(obj.get('customer'), {
                'status': SubscriptionStatus.PAST_DUE.value,
            })

        logger.info("[ASSINATURA] Evento não tratado: %s", event_type)
        return 'ignored'

    # =========================================================================
    # CHECKOUT E PORTAL
    # =========================================================================

    def create_checkout_session(self, email: Optional[str], base_url: str) -> Dict[str, Any]:
        """
        Abre o checkout de assinatura.

        Returns:
            {'ok': True, 'url'} ou {'ok': False, 'error'}
        """
        if not self.configured:
            return {'ok': False, 'error': 'Pagamentos não configurados'}
        base_url = base_url.rstrip('/')
        try:
            session = self.client.checkout.Session.create(
                api_key=self.secret_key,
                mode='subscription',
                payment_method_collection='always',
                success_url=f'{base_url}/conta',
                cancel_url=f'{base_url}/assinatura',
                customer_email=(email or '').strip().lower() or None,
            )
        except stripe.StripeError as e:
            logger.error("[ASSINATURA] Erro no checkout: %s", e)
            return {'ok': False, 'error': str(e)}
        return {'ok': True, 'url': session['url']}

    def create_portal_session(self, email: str, base_url: str) -> Dict[str, Any]:
        """Abre o portal do cliente para quem já tem assinatura."""
        if not self.configured:
            return {'ok': False, 'error': 'Pagamentos não configurados'}
        subscription = self.get_subscription(email)
        if not subscription or not subscription.get('stripe_customer_id'):
            return {'ok': False, 'error': 'Nenhuma assinatura encontrada'}
        try:
            session = self.client.billing_portal.Session.create(
                api_key=self.secret_key,
                customer=subscription['stripe_customer_id'],
                return_url=f"{base_url.rstrip('/')}/conta",
            )
        except stripe.StripeError as e:
            logger.error("[ASSINATURA] Erro no portal: %s", e)
            return {'ok': False, 'error': str(e)}
        return {'ok': True, 'url': session['url']}

    # =========================================================================
    # ACESSO
    # =========================================================================

    def get_subscription(self, email: str) -> Optional[Dict[str, Any]]:
        return self.subscription_repo.get_by_user((email or '').strip().lower())

    def has_access(self, email: str) -> bool:
        """E-mails da lista fixa sempre têm acesso; os demais só com assinatura ativa ou em teste."""
        email = (email or '').strip().lower()
        if not email:
            return False
        if email in self.always_active_emails:
            return True
        subscription = self.get_subscription(email)
        return bool(subscription) and subscription.get('status') in ACCESS_STATUSES
