"""
Integrations Module
Transaction submission for protocol writes
"""

from .tx_submitter import (
    TransactionSubmitter,
    RelayerSubmitter,
    SimulatedSubmitter,
    UnconfiguredSubmitter,
    get_submitter,
)

__all__ = [
    "TransactionSubmitter",
    "RelayerSubmitter",
    "SimulatedSubmitter",
    "UnconfiguredSubmitter",
    "get_submitter",
]
