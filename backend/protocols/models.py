"""
Normalized data model shared by fetchers, the APY engine, the aggregator
and the router. Everything here is rebuilt per request; nothing is persisted.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List, Dict, Any, Tuple


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ProtocolCategory(str, Enum):
    LENDING = "Lending"
    DEX = "DEX/AMM"
    YIELD_AGGREGATOR = "YieldAggregator"
    LIQUID_STAKING = "LiquidStaking"
    STABLECOIN = "Stablecoin"

    @classmethod
    def from_label(cls, label: Optional[str]) -> Optional["ProtocolCategory"]:
        """Map a DefiLlama category label onto our categories."""
        if not label:
            return None
        return _CATEGORY_LABELS.get(label.strip().lower())


_CATEGORY_LABELS = {
    "lending": ProtocolCategory.LENDING,
    "dexs": ProtocolCategory.DEX,
    "dex": ProtocolCategory.DEX,
    "dex/amm": ProtocolCategory.DEX,
    "yield aggregator": ProtocolCategory.YIELD_AGGREGATOR,
    "yieldaggregator": ProtocolCategory.YIELD_AGGREGATOR,
    "liquid staking": ProtocolCategory.LIQUID_STAKING,
    "liquidstaking": ProtocolCategory.LIQUID_STAKING,
    "cdp": ProtocolCategory.STABLECOIN,
    "stablecoin": ProtocolCategory.STABLECOIN,
}


class APYMethod(str, Enum):
    ON_CHAIN_PROFIT = "on_chain_profit"
    TVL_WEIGHTED_POOL_AVERAGE = "tvl_weighted_pool_average"
    SIMPLE_POOL_AVERAGE = "simple_pool_average"
    EXTRAPOLATED_7D_CHANGE = "extrapolated_7d_change"
    CATEGORY_BASELINE = "category_baseline"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class Protocol:
    slug: str
    display_name: str
    category: ProtocolCategory
    module_addresses: Tuple[str, ...] = ()


@dataclass(frozen=True)
class APYEstimate:
    """
    A yield number plus its provenance.
    `value` is a percentage (12.5 == 12.5%) or None when only a range exists.
    """
    value: Optional[float]
    method: APYMethod
    confidence: str
    note: str = ""
    range: Optional[str] = None

    @classmethod
    def unavailable(cls, note: str = "Query protocol UI for current rates") -> "APYEstimate":
        return cls(value=None, method=APYMethod.UNAVAILABLE, confidence="none", note=note)

    def display(self) -> str:
        if self.value is not None:
            return f"{self.value:.2f}%"
        return self.range or "N/A"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "value": self.value,
            "method": self.method.value,
            "confidence": self.confidence,
            "note": self.note,
            "range": self.range,
            "display": self.display(),
        }


@dataclass
class Strategy:
    address: str
    concrete_address: str
    name: str
    total_asset: float = 0.0
    total_shares: float = 0.0
    total_profit: float = 0.0
    total_loss: float = 0.0
    current_debt: float = 0.0
    debt_limit: float = 0.0
    last_report_timestamp: Optional[int] = None

    @property
    def net_profit(self) -> float:
        return self.total_profit - self.total_loss


@dataclass
class Vault:
    """A Canopy vault. Owns its strategies; they never outlive it."""
    asset: str
    address: str
    decimals: int
    tvl: float
    total_debt: float = 0.0
    total_shares: float = 0.0
    shares_address: Optional[str] = None
    shares_name: Optional[str] = None
    strategies: List[Strategy] = field(default_factory=list)
    apy: Optional[APYEstimate] = None

    @property
    def name(self) -> str:
        return f"Canopy {self.asset}"

    @property
    def primary_strategy(self) -> Optional[Strategy]:
        return self.strategies[0] if self.strategies else None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["name"] = self.name
        data["apy"] = self.apy.to_dict() if self.apy else None
        return data


@dataclass
class Market:
    """An Echelon lending market."""
    asset: str
    address: str
    total_supply: Optional[float] = None
    total_borrow: Optional[float] = None
    supply_rate: Optional[float] = None
    borrow_rate: Optional[float] = None
    utilization: Optional[float] = None
    decimals: int = 8
    status: str = "live"

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["name"] = f"Echelon {self.asset}"
        return data


@dataclass(frozen=True)
class PriceQuote:
    symbol: str
    usd: float
    confidence: float
    observed_at: int
    source: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "usd": self.usd,
            "confidence": self.confidence,
            "source": self.source,
            "last_update": datetime.fromtimestamp(self.observed_at, tz=timezone.utc).isoformat(),
        }


@dataclass
class Balance:
    asset: str
    amount: int
    decimals: int
    asset_type: str
    protocol: str
    price_usd: float = 0.0
    value_usd: float = 0.0

    @property
    def normalized_amount(self) -> float:
        return self.amount / (10 ** self.decimals)


@dataclass
class UserPosition:
    wallet: str
    balances: List[Balance] = field(default_factory=list)
    total_value_usd: float = 0.0
    timestamp: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["total_assets"] = len(self.balances)
        return data


@dataclass
class AggregatedSnapshot:
    network: Dict[str, Any]
    protocols: Dict[str, Optional[Dict[str, Any]]]
    all_protocols: List[Dict[str, Any]]
    prices: Dict[str, Dict[str, Any]]
    timestamp: str = field(default_factory=utc_now_iso)
    user_position: Optional[UserPosition] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "network": self.network,
            "protocols": self.protocols,
            "all_protocols": self.all_protocols,
            "prices": self.prices,
            "timestamp": self.timestamp,
            "user_position": self.user_position.to_dict() if self.user_position else None,
        }


@dataclass(frozen=True)
class CallDescriptor:
    """An entry-function or view-function call: `<address>::<module>::<fn>`."""
    function: str
    type_arguments: Tuple[str, ...] = ()
    arguments: Tuple[Any, ...] = ()

    def to_payload(self) -> Dict[str, Any]:
        return {
            "function": self.function,
            "type_arguments": list(self.type_arguments),
            "arguments": [str(a) for a in self.arguments],
        }


@dataclass
class TxResult:
    success: bool
    hash: Optional[str] = None
    step: Optional[str] = None
    protocol: Optional[str] = None
    asset: Optional[str] = None
    amount: Optional[str] = None
    vm_status: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ZapPlan:
    token_in: str
    token_out: str
    total_amount_in: int
    swap_amount: int
    remaining_amount: int
    expected_out: int
    min_amount_out: int

    def to_dict(self) -> Dict[str, Any]:
        # Integers as strings, JSON clients lose precision past 2**53
        return {k: str(v) if isinstance(v, int) else v for k, v in asdict(self).items()}


@dataclass
class ZapResult:
    swap_hash: str
    liquidity_hash: str
    plan: ZapPlan

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "action": "zap_in",
            "steps": ["swap", "add_liquidity"],
            "swap_hash": self.swap_hash,
            "liquidity_hash": self.liquidity_hash,
            "plan": self.plan.to_dict(),
        }
