"""
Movement Protocol Integrations
Data model, errors and the address registry. The router lives in
protocols.router and is imported directly to keep this package light.
"""
from .errors import (
    AggregatorError,
    SourceUnavailableError,
    ChainUnavailableError,
    ResolutionError,
    TransactionFailedError,
    PartialZapError,
    ZapPreconditionError,
)
from .models import ProtocolCategory, APYMethod, APYEstimate, Vault, Market, PriceQuote

__all__ = [
    'AggregatorError',
    'SourceUnavailableError',
    'ChainUnavailableError',
    'ResolutionError',
    'TransactionFailedError',
    'PartialZapError',
    'ZapPreconditionError',
    'ProtocolCategory',
    'APYMethod',
    'APYEstimate',
    'Vault',
    'Market',
    'PriceQuote',
]
