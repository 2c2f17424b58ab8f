# ==============================================================================
# CAMADA DE REPOSITÓRIOS - Acesso a dados
# ==============================================================================
# Encapsula toda a persistência (hoje arquivos JSON, um por tabela).
# Ao migrar para um banco, só esta camada muda; os serviços não.
#
# ESTRUTURA:
# ├── base.py                       → BaseRepository, DictRepository, ListRepository, TableRepository
# ├── user_repository.py            → users.json
# ├── supplier_repository.py        → suppliers.json
# ├── airline_repository.py         → companhias, vínculos e regras de programa
# ├── account_repository.py         → contas, CPFs por conta, movimentações
# ├── cpf_repository.py             → cpf_registry.json
# ├── sales_repository.py           → vendas, trechos e pagamentos
# ├── ticket_repository.py          → tickets.json
# ├── quote_repository.py           → quotes.json
# ├── customer_repository.py        → customers.json
# ├── payment_method_repository.py  → formas de pagamento e juros
# ├── subscription_repository.py    → billing_subscriptions.json
# └── audit_repository.py           → audit.json
# ==============================================================================

from agencia_milhas.repositories.base import (
    BaseRepository,
    DictRepository,
    ListRepository,
    TableRepository,
)
from agencia_milhas.repositories.user_repository import UserRepository
from agencia_milhas.repositories.supplier_repository import SupplierRepository
from agencia_milhas.repositories.airline_repository import (
    AirlineRepository,
    SupplierAirlineRepository,
    ProgramRuleRepository,
)
from agencia_milhas.repositories.account_repository import (
    AccountRepository,
    AccountCpfRepository,
    MovementRepository,
)
from agencia_milhas.repositories.cpf_repository import CpfRegistryRepository
from agencia_milhas.repositories.sales_repository import (
    SalesRepository,
    SaleSegmentRepository,
    PaymentTransactionRepository,
)
from agencia_milhas.repositories.ticket_repository import TicketRepository
from agencia_milhas.repositories.quote_repository import QuoteRepository
from agencia_milhas.repositories.customer_repository import CustomerRepository
from agencia_milhas.repositories.payment_method_repository import (
    PaymentMethodRepository,
    InterestConfigRepository,
)
from agencia_milhas.repositories.subscription_repository import SubscriptionRepository
from agencia_milhas.repositories.audit_repository import AuditRepository

__all__ = [
    'BaseRepository',
    'DictRepository',
    'ListRepository',
    'TableRepository',
    'UserRepository',
    'SupplierRepository',
    'AirlineRepository',
    'SupplierAirlineRepository',
    'ProgramRuleRepository',
    'AccountRepository',
    'AccountCpfRepository',
    'MovementRepository',
    'CpfRegistryRepository',
    'SalesRepository',
    'SaleSegmentRepository',
    'PaymentTransactionRepository',
    'TicketRepository',
    'QuoteRepository',
    'CustomerRepository',
    'PaymentMethodRepository',
    'InterestConfigRepository',
    'SubscriptionRepository',
    'AuditRepository',
]
