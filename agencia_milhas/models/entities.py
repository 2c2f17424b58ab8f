# ==============================================================================
# ENTIDADES DO DOMÍNIO - Enums e dataclasses
# ==============================================================================
# Cada entidade representa um conceito do negócio de revenda de milhas.
# Independentes do mecanismo de persistência (JSON hoje, banco depois).
# ==============================================================================

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional

from agencia_milhas.helpers import only_digits, to_float, to_int


# ==============================================================================
# ENUMERAÇÕES - Estados e tipos válidos
# ==============================================================================

class UserRole(str, Enum):
    """Papéis de usuário."""
    ADMIN = "admin"
    SUPPLIER_OWNER = "supplier_owner"
    SELLER = "seller"


class AccountStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class CpfStatus(str, Enum):
    """Situação de um CPF no registro de uso por programa."""
    AVAILABLE = "available"
    BLOCKED = "blocked"


class RenewalType(str, Enum):
    """Como o limite de CPFs de um programa se renova."""
    ANNUAL = "annual"     # 1º de janeiro do ano seguinte
    ROLLING = "rolling"   # 1 ano após o primeiro uso


class SaleChannel(str, Enum):
    """Canal informado no formulário de venda."""
    INTERNAL = "internal"   # Conta de milhas própria
    COUNTER = "counter"     # Balcão (milhas compradas de terceiros)
    LEGACY = "legacy"       # Venda histórica/importada


class SaleSource(str, Enum):
    INTERNAL_ACCOUNT = "internal_account"
    MILEAGE_COUNTER = "mileage_counter"
    BULK_IMPORT = "bulk_import"


class SaleStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"
    REFUNDED = "refunded"


class TripType(str, Enum):
    ONE_WAY = "one_way"
    ROUND_TRIP = "round_trip"
    MULTI_CITY = "multi_city"


# Direção gravada em cada trecho, derivada do tipo de viagem
SEGMENT_DIRECTIONS = {
    TripType.ONE_WAY.value: "oneway",
    TripType.ROUND_TRIP.value: "roundtrip",
    TripType.MULTI_CITY.value: "multicity",
}


class TicketStatus(str, Enum):
    CONFIRMED = "confirmed"
    PENDING = "pending"
    CANCELLED = "cancelled"


class QuoteStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    TRIALING = "trialing"
    PAST_DUE = "past_due"
    GRACE_PERIOD = "grace_period"
    SUSPENDED = "suspended"
    CANCELLED = "cancelled"


class SupplierPaymentType(str, Enum):
    PREPAID = "prepaid"
    PER_USE = "per_use"


class MovementType(str, Enum):
    CREDIT = "credit"
    DEBIT = "debit"


class AuditType(str, Enum):
    """Tipos de evento de auditoria."""
    VENDA = "VENDA"
    PAGAMENTO = "PAGAMENTO"
    CONTA = "CONTA"
    CPF = "CPF"
    BILHETE = "BILHETE"
    ORCAMENTO = "ORCAMENTO"
    CLIENTE = "CLIENTE"
    IMPORTACAO = "IMPORTACAO"
    USUARIO = "USUARIO"
    SISTEMA = "SISTEMA"


# Formas de pagamento aceitas na importação em massa
IMPORT_PAYMENT_METHODS = ('pix', 'credit_card', 'debit_card', 'boleto')


# ==============================================================================
# VENDAS
# ==============================================================================

@dataclass
class FlightSegment:
    """
    Trecho de voo de uma venda.

    Attributes:
        from_code: Aeroporto de origem (IATA, 3 letras)
        to_code: Aeroporto de destino (IATA, 3 letras)
        date: Data do voo (AAAA-MM-DD)
        miles: Milhas usadas no trecho
        flight_number: Número do voo (opcional)
    """
    from_code: str
    to_code: str
    date: str
    miles: float = 0.0
    flight_number: Optional[str] = None

    @property
    def label(self) -> str:
        return f"{self.from_code}-{self.to_code}"

    def validate(self) -> List[str]:
        errors = []
        if len(self.from_code) != 3:
            errors.append('Origem deve ter 3 letras (código IATA)')
        if len(self.to_code) != 3:
            errors.append('Destino deve ter 3 letras (código IATA)')
        if not self.date:
            errors.append('Data do trecho é obrigatória')
        return errors

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FlightSegment':
        return cls(
            from_code=str(data.get('from') or data.get('from_code') or '').strip().upper(),
            to_code=str(data.get('to') or data.get('to_code') or '').strip().upper(),
            date=str(data.get('date') or '').strip(),
            miles=to_float(data.get('miles')),
            flight_number=(data.get('flight_number') or None),
        )


@dataclass
class SaleForm:
    """
    Dados de entrada para registrar uma venda.

    Os campos de canal são opcionais aqui; as exigências de cada canal
    são verificadas pelo serviço de vendas.
    """
    channel: str
    customer_name: str
    customer_cpf: str = ''
    customer_phone: str = ''
    passengers: int = 1
    trip_type: str = TripType.ONE_WAY.value
    flight_segments: List[FlightSegment] = field(default_factory=list)
    price_total: float = 0.0
    boarding_fee: float = 0.0
    total_miles: Optional[float] = None
    passenger_cpfs: List[Dict[str, str]] = field(default_factory=list)
    # Canal interno
    program_id: str = ''
    account_id: str = ''
    # Canal balcão
    seller_name: str = ''
    seller_contact: str = ''
    counter_cost_per_thousand: float = 0.0
    counter_airline_program: str = ''
    # Canal legado
    cost_per_thousand: float = 0.0
    # Comuns
    payment_method: str = ''
    payment_status: str = PaymentStatus.PENDING.value
    sale_date: Optional[str] = None
    notes: str = ''
    airline_program: str = ''
    locator: str = ''

    def validate(self, require_segments: bool = True) -> List[str]:
        """Validação básica do formulário (independe do canal)."""
        errors = []
        if not self.customer_name.strip():
            errors.append('Nome do cliente é obrigatório')
        if self.customer_cpf and len(only_digits(self.customer_cpf)) < 11:
            errors.append('CPF do cliente deve ter 11 dígitos')
        if self.passengers < 1:
            errors.append('Informe ao menos 1 passageiro')
        if self.trip_type not in SEGMENT_DIRECTIONS:
            errors.append('Tipo de viagem inválido')
        if require_segments and not self.flight_segments:
            errors.append('Informe ao menos um trecho')
        for seg in self.flight_segments:
            errors.extend(seg.validate())
        return errors

    @property
    def segment_miles(self) -> float:
        return sum(s.miles for s in self.flight_segments)

    @property
    def route_text(self) -> str:
        return ', '.join(s.label for s in self.flight_segments)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SaleForm':
        """Cria o formulário a partir do JSON recebido pela API."""
        segments = [FlightSegment.from_dict(s) for s in (data.get('flight_segments') or [])]
        total_miles = data.get('total_miles')
        return cls(
            channel=str(data.get('channel') or '').strip().lower(),
            customer_name=str(data.get('customer_name') or '').strip(),
            customer_cpf=str(data.get('customer_cpf') or '').strip(),
            customer_phone=str(data.get('customer_phone') or '').strip(),
            passengers=to_int(data.get('passengers'), 1),
            trip_type=str(data.get('trip_type') or TripType.ONE_WAY.value),
            flight_segments=segments,
            price_total=to_float(data.get('price_total')),
            boarding_fee=to_float(data.get('boarding_fee')),
            total_miles=to_float(total_miles) if total_miles not in (None, '') else None,
            passenger_cpfs=list(data.get('passenger_cpfs') or []),
            program_id=str(data.get('program_id') or ''),
            account_id=str(data.get('account_id') or ''),
            seller_name=str(data.get('seller_name') or '').strip(),
            seller_contact=str(data.get('seller_contact') or '').strip(),
            counter_cost_per_thousand=to_float(data.get('counter_cost_per_thousand')),
            counter_airline_program=str(data.get('counter_airline_program') or '').strip(),
            cost_per_thousand=to_float(data.get('cost_per_thousand')),
            payment_method=str(data.get('payment_method') or ''),
            payment_status=str(data.get('payment_status') or PaymentStatus.PENDING.value),
            sale_date=data.get('sale_date') or None,
            notes=str(data.get('notes') or ''),
            airline_program=str(data.get('airline_program') or ''),
            locator=str(data.get('locator') or ''),
        )


# ==============================================================================
# CALCULADORAS
# ==============================================================================

@dataclass
class CalculatorInputs:
    """Entradas da calculadora de cotação."""
    miles: float = 0.0
    cost_per_thousand: float = 0.0
    boarding_fee: float = 0.0
    passengers: int = 1
    target_margin: float = 0.0
    manual_price: float = 0.0


@dataclass
class CalculatorResults:
    cost_per_passenger: float
    total_cost: float
    suggested_price: float
    final_price: float
    profit: float
    profit_margin: float
    effective_cost_per_mile: float
    price_per_thousand: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class MarginSimulation:
    """Resultado do simulador de margem."""
    gross_value: float
    cost_value: float
    margin_value: float
    margin_percentage: float
    break_even_price_per_thousand: float
    is_negative: bool
    is_good_margin: bool

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class InstallmentResult:
    installments: int
    installment_value: float
    final_price: float
    interest_rate: float
    has_interest: bool

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ==============================================================================
# IMPORTAÇÃO EM MASSA
# ==============================================================================

@dataclass
class ValidationResult:
    """Resultado da validação de uma linha da planilha."""
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    airline_company_id: Optional[str] = None
    airline_name: Optional[str] = None
    mileage_account_id: Optional[str] = None
    account_number: Optional[str] = None
    is_counter: bool = False
    is_duplicate: bool = False

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['is_valid'] = self.is_valid
        return data


# ==============================================================================
# BILHETES
# ==============================================================================

# Campos devolvidos pela leitura de bilhetes (heurística e IA)
TICKET_FIELDS = (
    'pnr', 'ticketNumber', 'passengerName', 'cpf',
    'route', 'departureDate', 'airline', 'flightNumber',
)


@dataclass
class TicketExtraction:
    """
    Resultado da extração de dados de um bilhete.

    Attributes:
        fields: Campos encontrados (chaves de TICKET_FIELDS, mais 'total')
        confidence: Fração dos 8 campos principais encontrados (0 a 1)
        engine: 'pdf' (texto embutido) ou 'ocr'
        language: 'pt', 'en' ou 'es'
    """
    fields: Dict[str, Any] = field(default_factory=dict)
    confidence: float = 0.0
    engine: str = 'pdf'
    language: str = 'pt'
    text_length: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
