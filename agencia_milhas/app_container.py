# ==============================================================================
# CONTÊINER DE DEPENDÊNCIAS - Injeção de serviços
# ==============================================================================
# Ponto único para obter repositórios e serviços. Facilita:
#   - Injeção de dependências
#   - Testes (cada teste monta um contêiner sobre uma pasta temporária)
#   - Trocar a persistência JSON por banco sem mexer nos serviços
#
# Tudo é criado sob demanda (lazy) e reaproveitado depois.
# ==============================================================================

import os
from typing import Any, Dict

# ═══════════════════════════════════════════════════════════════════════════════
# REPOSITÓRIOS - Persistência (JSON hoje)
# ═══════════════════════════════════════════════════════════════════════════════
from agencia_milhas.repositories import (
    AccountCpfRepository,
    AccountRepository,
    AirlineRepository,
    AuditRepository,
    CustomerRepository,
    CpfRegistryRepository,
    InterestConfigRepository,
    MovementRepository,
    PaymentMethodRepository,
    PaymentTransactionRepository,
    ProgramRuleRepository,
    QuoteRepository,
    SaleSegmentRepository,
    SalesRepository,
    SubscriptionRepository,
    SupplierAirlineRepository,
    SupplierRepository,
    TicketRepository,
    UserRepository,
)

# ═══════════════════════════════════════════════════════════════════════════════
# SERVIÇOS - Regras de negócio
# ═══════════════════════════════════════════════════════════════════════════════
from agencia_milhas.services import (
    AccountService,
    AirlineService,
    AuditService,
    BillingService,
    BulkImportService,
    CpfService,
    CustomerService,
    PaymentMethodService,
    PaymentService,
    QuoteService,
    ReportService,
    SalesService,
    SupplierService,
    TicketAIService,
    TicketService,
    UserService,
)
from agencia_milhas.config import DEFAULT_AI_MODEL

REPOSITORY_CLASSES = {
    'user_repo': UserRepository,
    'supplier_repo': SupplierRepository,
    'airline_repo': AirlineRepository,
    'supplier_airline_repo': SupplierAirlineRepository,
    'program_rule_repo': ProgramRuleRepository,
    'account_repo': AccountRepository,
    'account_cpf_repo': AccountCpfRepository,
    'movement_repo': MovementRepository,
    'cpf_repo': CpfRegistryRepository,
    'sales_repo': SalesRepository,
    'segment_repo': SaleSegmentRepository,
    'payment_repo': PaymentTransactionRepository,
    'customer_repo': CustomerRepository,
    'ticket_repo': TicketRepository,
    'quote_repo': QuoteRepository,
    'payment_method_repo': PaymentMethodRepository,
    'interest_repo': InterestConfigRepository,
    'subscription_repo': SubscriptionRepository,
    'audit_repo': AuditRepository,
}


class AppContainer:
    """
    Contêiner de dependências da aplicação.

    Uso:
        container = AppContainer(base_path='/dados', config=app.config)
        sales_service = container.sales_service

    Args:
        base_path: Pasta dos arquivos JSON
        config: Configuração (chave da IA, webhook, limites)
        ai_client: Cliente do modelo de linguagem (substituído nos testes)
        payment_client: Cliente da API de pagamentos (padrão: módulo stripe)
    """

    def __init__(
        self,
        base_path: str = None,
        config: Dict[str, Any] = None,
        ai_client: Any = None,
        payment_client: Any = None
    ):
        self._base_path = base_path or os.path.join(os.path.dirname(os.path.abspath(__file__)), 'data')
        os.makedirs(self._base_path, exist_ok=True)
        self._config = dict(config or {})
        self._ai_client = ai_client
        self._payment_client = payment_client
        self._repos: Dict[str, Any] = {}
        self._services: Dict[str, Any] = {}

    @property
    def base_path(self) -> str:
        return self._base_path

    # =========================================================================
    # REPOSITÓRIOS
    # =========================================================================

    def repo(self, name: str) -> Any:
        """Repositório pelo nome (singleton dentro do contêiner)."""
        if name not in self._repos:
            self._repos[name] = REPOSITORY_CLASSES[name](self._base_path)
        return self._repos[name]

    def __getattr__(self, name: str) -> Any:
        # Só chamado quando o atributo não existe: container.sales_repo, etc.
        if name in REPOSITORY_CLASSES:
            return self.repo(name)
        raise AttributeError(name)

    def _service(self, name: str, factory) -> Any:
        if name not in self._services:
            self._services[name] = factory()
        return self._services[name]

    # =========================================================================
    # SERVIÇOS
    # =========================================================================

    @property
    def audit_service(self) -> AuditService:
        return self._service('audit', lambda: AuditService(self.audit_repo))

    @property
    def cpf_service(self) -> CpfService:
        return self._service('cpf', lambda: CpfService(
            self.cpf_repo,
            self.airline_repo,
            self.program_rule_repo,
            self.account_cpf_repo,
            self.audit_service
        ))

    @property
    def airline_service(self) -> AirlineService:
        return self._service('airline', lambda: AirlineService(
            self.airline_repo,
            self.supplier_airline_repo,
            self.audit_service
        ))

    @property
    def supplier_service(self) -> SupplierService:
        return self._service('supplier', lambda: SupplierService(self.supplier_repo, self.audit_service))

    @property
    def account_service(self) -> AccountService:
        return self._service('account', lambda: AccountService(
            self.account_repo,
            self.airline_repo,
            self.movement_repo,
            self.cpf_service,
            self.audit_service
        ))

    @property
    def customer_service(self) -> CustomerService:
        return self._service('customer', lambda: CustomerService(
            self.customer_repo,
            self.sales_repo,
            self.audit_service
        ))

    @property
    def sales_service(self) -> SalesService:
        return self._service('sales', lambda: SalesService(
            self.sales_repo,
            self.segment_repo,
            self.payment_repo,
            self.account_repo,
            self.account_service,
            self.cpf_service,
            self.audit_service,
            self.customer_service
        ))

    @property
    def payment_service(self) -> PaymentService:
        return self._service('payment', lambda: PaymentService(
            self.sales_repo,
            self.payment_repo,
            self.audit_service
        ))

    @property
    def bulk_import_service(self) -> BulkImportService:
        return self._service('bulk_import', lambda: BulkImportService(
            self.sales_service,
            self.airline_service,
            self.airline_repo,
            self.account_repo,
            self.sales_repo,
            self.audit_service,
            max_rows=int(self._config.get('MAX_IMPORT_ROWS', 500))
        ))

    @property
    def ticket_service(self) -> TicketService:
        return self._service('ticket', lambda: TicketService(
            self.ticket_repo,
            self.sales_repo,
            self.audit_service
        ))

    @property
    def ticket_ai_service(self) -> TicketAIService:
        return self._service('ticket_ai', lambda: TicketAIService(
            self._config.get('ANTHROPIC_API_KEY'),
            self._config.get('TICKET_AI_MODEL') or DEFAULT_AI_MODEL,
            client=self._ai_client
        ))

    @property
    def quote_service(self) -> QuoteService:
        return self._service('quote', lambda: QuoteService(
            self.quote_repo,
            self.interest_repo,
            self.sales_service,
            self.audit_service
        ))

    @property
    def payment_method_service(self) -> PaymentMethodService:
        return self._service('payment_method', lambda: PaymentMethodService(
            self.payment_method_repo,
            self.interest_repo
        ))

    @property
    def report_service(self) -> ReportService:
        return self._service('report', lambda: ReportService(
            self.sales_repo,
            self.account_repo,
            self.airline_repo,
            self.account_service
        ))

    @property
    def billing_service(self) -> BillingService:
        return self._service('billing', lambda: BillingService(
            self.subscription_repo,
            self.user_repo,
            self._config.get('ALWAYS_ACTIVE_EMAILS') or (),
            self._config.get('STRIPE_SECRET_KEY'),
            client=self._payment_client
        ))

    @property
    def user_service(self) -> UserService:
        return self._service('user', lambda: UserService(
            self.user_repo,
            self.supplier_repo,
            self.audit_service
        ))
