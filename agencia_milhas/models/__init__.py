# ==============================================================================
# CAMADA DE MODELOS - Estruturas de dados do sistema
# ==============================================================================
# Enums de status e dataclasses usados pelos serviços.
# Os repositórios continuam trabalhando com dicionários (JSON).
# ==============================================================================

from .entities import (
    # Enums
    UserRole,
    AccountStatus,
    CpfStatus,
    RenewalType,
    SaleChannel,
    SaleSource,
    SaleStatus,
    PaymentStatus,
    TripType,
    TicketStatus,
    QuoteStatus,
    SubscriptionStatus,
    SupplierPaymentType,
    MovementType,
    AuditType,
    SEGMENT_DIRECTIONS,
    IMPORT_PAYMENT_METHODS,
    TICKET_FIELDS,

    # Vendas
    FlightSegment,
    SaleForm,

    # Calculadoras
    CalculatorInputs,
    CalculatorResults,
    MarginSimulation,
    InstallmentResult,

    # Importação
    ValidationResult,

    # Bilhetes
    TicketExtraction,
)

__all__ = [
    'UserRole',
    'AccountStatus',
    'CpfStatus',
    'RenewalType',
    'SaleChannel',
    'SaleSource',
    'SaleStatus',
    'PaymentStatus',
    'TripType',
    'TicketStatus',
    'QuoteStatus',
    'SubscriptionStatus',
    'SupplierPaymentType',
    'MovementType',
    'AuditType',
    'SEGMENT_DIRECTIONS',
    'IMPORT_PAYMENT_METHODS',
    'TICKET_FIELDS',
    'FlightSegment',
    'SaleForm',
    'CalculatorInputs',
    'CalculatorResults',
    'MarginSimulation',
    'InstallmentResult',
    'ValidationResult',
    'TicketExtraction',
]
