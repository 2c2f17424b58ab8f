# ==============================================================================
# CAMADA DE SERVIÇOS - Regras de negócio
# ==============================================================================
# As rotas só chamam serviços; os serviços orquestram os repositórios.
#
# ESTRUTURA:
# ├── audit_service.py          → Trilha de auditoria
# ├── calculator.py             → Custos, margens, simulador e juros (funções puras)
# ├── cpf_service.py            → Registro de CPFs, limites e renovação
# ├── airline_service.py        → Companhias aéreas e fornecedores de milhas
# ├── account_service.py        → Contas de milhas e movimentações
# ├── sales_service.py          → Vendas (interna, balcão, legado)
# ├── payment_service.py        → Pagamentos recebidos
# ├── bulk_import_service.py    → Importação de planilhas e modelos
# ├── ticket_parser.py          → Leitura heurística de bilhetes
# ├── ticket_service.py         → Bilhetes + PDF/OCR
# ├── ticket_ai_service.py      → Leitura de bilhetes com IA
# ├── quote_service.py          → Orçamentos
# ├── customer_service.py       → Clientes e histórico de compras
# ├── payment_method_service.py → Formas de pagamento e juros
# ├── report_service.py         → KPIs e exportação CSV
# ├── billing_service.py        → Webhook de pagamentos e acesso
# ├── user_service.py           → Cadastro, login e convites
# └── backup_service.py         → Backups diários em ZIP
# ==============================================================================

from agencia_milhas.services.audit_service import AuditService
from agencia_milhas.services.cpf_service import CpfService
from agencia_milhas.services.airline_service import AirlineService, SupplierService
from agencia_milhas.services.account_service import AccountService
from agencia_milhas.services.customer_service import CustomerService
from agencia_milhas.services.sales_service import SalesService
from agencia_milhas.services.payment_service import PaymentService
from agencia_milhas.services.bulk_import_service import BulkImportService
from agencia_milhas.services.ticket_service import TicketService
from agencia_milhas.services.ticket_ai_service import TicketAIService, TicketAIError
from agencia_milhas.services.quote_service import QuoteService
from agencia_milhas.services.payment_method_service import PaymentMethodService
from agencia_milhas.services.report_service import ReportService
from agencia_milhas.services.billing_service import BillingService, WebhookSignatureError
from agencia_milhas.services.user_service import UserService
from agencia_milhas.services.backup_service import BackupService, run_startup_backup

__all__ = [
    'AuditService',
    'CpfService',
    'AirlineService',
    'SupplierService',
    'AccountService',
    'CustomerService',
    'SalesService',
    'PaymentService',
    'BulkImportService',
    'TicketService',
    'TicketAIService',
    'TicketAIError',
    'QuoteService',
    'PaymentMethodService',
    'ReportService',
    'BillingService',
    'WebhookSignatureError',
    'UserService',
    'BackupService',
    'run_startup_backup',
]
