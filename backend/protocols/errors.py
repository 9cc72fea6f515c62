"""
Error taxonomy.

Read paths swallow SourceUnavailableError into neutral defaults; everything
else here is meant to reach the caller.
"""

from typing import Optional


class AggregatorError(Exception):
    """Base class for all backend errors"""


class SourceUnavailableError(AggregatorError):
    """A data source timed out, errored or returned something unparseable"""
    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"{source} unavailable: {reason}")


class ChainUnavailableError(AggregatorError):
    """The mandatory network-identity call failed; a snapshot cannot be labelled"""
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Chain identity unavailable: {reason}")


class ResolutionError(AggregatorError):
    """No on-chain address registered for a protocol/asset that requires one"""
    def __init__(self, protocol: str, asset: Optional[str] = None, reason: str = "no address registered"):
        self.protocol = protocol
        self.asset = asset
        self.reason = reason
        super().__init__(f"Cannot resolve address for {protocol} ({asset or 'any asset'}): {reason}")


class TransactionFailedError(AggregatorError):
    """Signing/submission rejected or the transaction failed on-chain"""
    def __init__(self, step: str, reason: str, protocol: Optional[str] = None, tx_hash: Optional[str] = None):
        self.step = step
        self.reason = reason
        self.protocol = protocol
        self.tx_hash = tx_hash
        super().__init__(f"Transaction failed at step '{step}': {reason}")


class PartialZapError(TransactionFailedError):
    """
    Swap landed but add_liquidity failed.
    The user now holds the swapped balance and needs manual recovery.
    """
    def __init__(self, reason: str, swap_hash: str, protocol: Optional[str] = None):
        self.swap_hash = swap_hash
        super().__init__("add_liquidity", reason, protocol=protocol)

    def __str__(self) -> str:
        return f"Partial zap: swap {self.swap_hash} succeeded, add_liquidity failed: {self.reason}"


class ZapPreconditionError(ValueError):
    """Zap rejected before any transaction was attempted"""
