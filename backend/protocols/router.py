"""
Protocol Router - one deposit/withdraw contract over differing Move entry functions

Protocols are described as data (module + function names) and the router
branches on the descriptor's type, never on the protocol name:

    lending / staking: <address>::<module>::<fn>(amount)
    vault:             <controller>::vault::<fn>(vault_address, amount)
    dex:               <router>::router::<fn><token_a, token_b>(...)
"""

import logging
from dataclasses import dataclass
from typing import Optional, Dict, Any, List, Tuple

from config import settings
from data_sources.canopy import CanopyFetcher
from data_sources.movement_rpc import MovementRPCClient
from integrations.tx_submitter import TransactionSubmitter, get_submitter
from protocols import registry
from protocols.errors import ResolutionError, TransactionFailedError, SourceUnavailableError
from protocols.models import CallDescriptor, TxResult

logger = logging.getLogger("ProtocolRouter")


@dataclass(frozen=True)
class ProtocolDescriptor:
    slug: str
    name: str
    type: str  # 'lending' | 'vault' | 'dex' | 'staking'
    module: str
    deposit_fn: str
    withdraw_fn: str


# ============================================
# PROTOCOL DESCRIPTORS
# ============================================

PROTOCOLS: Dict[str, ProtocolDescriptor] = {
    "echelon": ProtocolDescriptor("echelon", "Echelon", "lending", "lending_pool", "deposit", "withdraw"),
    "moveposition": ProtocolDescriptor("moveposition", "MovePosition", "lending", "lending", "supply", "withdraw"),
    "canopy": ProtocolDescriptor("canopy", "Canopy", "vault", "vault", "deposit", "withdraw"),
    "meridian": ProtocolDescriptor("meridian", "Meridian", "dex", "router", "add_liquidity", "remove_liquidity"),
    "mst": ProtocolDescriptor("mst", "Meridian MST Staking", "staking", "mst_staking", "stake", "unstake"),
    "usdm": ProtocolDescriptor("usdm", "Meridian USDM Stability Pool", "staking", "stability_pool", "deposit", "withdraw"),
}

DEFAULT_PROTOCOL = "echelon"

# Old name for the Canopy controller
ALIASES = {"satay": "canopy"}


def get_protocol(slug: Optional[str]) -> ProtocolDescriptor:
    """Normalize a slug (lowercase, letters only); unknown slugs get the default protocol."""
    normalized = registry.normalize_slug(slug)
    normalized = ALIASES.get(normalized, normalized)
    descriptor = PROTOCOLS.get(normalized)
    if descriptor is None:
        logger.warning(f"Unknown protocol '{slug}', defaulting to {DEFAULT_PROTOCOL}")
        return PROTOCOLS[DEFAULT_PROTOCOL]
    return descriptor


def _token_type(token: str) -> str:
    """Symbol -> on-chain type/address; anything already address-like passes through"""
    address = registry.token_address(token)
    if address:
        return address
    if token.startswith("0x"):
        return token
    raise ResolutionError("meridian", token, "unknown token")


def build_call(
    slug: str,
    action: str,
    asset: str,
    amount: Any,
    vault_address: Optional[str] = None,
) -> CallDescriptor:
    """
    Build the entry-function call for a deposit or withdraw.

    Raises:
        ResolutionError: no address registered for the protocol/asset, or a
            vault-type protocol without a vault address
        ValueError: unsupported action, or a dex protocol (needs a token pair)
    """
    if action not in ("deposit", "withdraw"):
        raise ValueError(f"Unsupported action '{action}'")

    descriptor = get_protocol(slug)
    fn = descriptor.deposit_fn if action == "deposit" else descriptor.withdraw_fn

    if descriptor.type == "dex":
        raise ValueError(f"{descriptor.name} is a DEX; single-asset deposits go through zap")

    address = registry.resolve(descriptor.slug, asset)
    function = f"{address}::{descriptor.module}::{fn}"

    if descriptor.type == "vault":
        if not vault_address:
            raise ResolutionError(descriptor.name, asset, "no vault for asset")
        return CallDescriptor(function=function, arguments=(vault_address, str(amount)))

    return CallDescriptor(function=function, arguments=(str(amount),))


class ProtocolRouter:
    """
    Usage:
        router = get_protocol_router()
        result = await router.deposit("echelon", "USDC", "1000000", user)
    """

    def __init__(
        self,
        submitter: Optional[TransactionSubmitter] = None,
        rpc: Optional[MovementRPCClient] = None,
        canopy: Optional[CanopyFetcher] = None,
    ):
        self.submitter = submitter or get_submitter()
        self.rpc = rpc or MovementRPCClient()
        self.canopy = canopy or CanopyFetcher(rpc=self.rpc)
        self.dex_router = registry.resolve("meridian")

    async def _submit(
        self,
        call: CallDescriptor,
        user: Optional[str],
        step: str,
        protocol: str,
        asset: Optional[str] = None,
        amount: Any = None,
    ) -> TxResult:
        sender = user or settings.SERVER_ADDRESS
        logger.info(f"[{step}] {call.function} for {sender}")

        result = await self.submitter.submit(call, sender)
        if not result.success:
            reason = result.error or result.vm_status or "transaction rejected"
            logger.error(f"❌ {protocol} {step} failed: {reason}")
            raise TransactionFailedError(step, reason, protocol=protocol, tx_hash=result.hash)

        result.step = step
        result.protocol = protocol
        result.asset = asset
        result.amount = str(amount) if amount is not None else None
        return result

    async def _vault_address(self, descriptor: ProtocolDescriptor, asset: str) -> Optional[str]:
        if descriptor.type != "vault":
            return None
        vault = await self.canopy.get_vault(asset)
        if vault is None:
            raise ResolutionError(descriptor.name, asset, "no vault for asset")
        return vault.address

    async def _execute(self, action: str, slug: str, asset: str, amount: Any, user: Optional[str]) -> TxResult:
        descriptor = get_protocol(slug)
        vault_address = await self._vault_address(descriptor, asset)
        call = build_call(descriptor.slug, action, asset, amount, vault_address=vault_address)
        return await self._submit(call, user, action, descriptor.name, asset, amount)

    async def deposit(self, slug: str, asset: str, amount: Any, user: Optional[str] = None) -> TxResult:
        return await self._execute("deposit", slug, asset, amount, user)

    async def withdraw(self, slug: str, asset: str, amount: Any, user: Optional[str] = None) -> TxResult:
        return await self._execute("withdraw", slug, asset, amount, user)

    # ============================================
    # DEX VERBS (Meridian router)
    # ============================================

    async def swap(self, token_in: str, token_out: str, amount_in: int, min_amount_out: int, user: Optional[str] = None) -> TxResult:
        call = CallDescriptor(
            function=f"{self.dex_router}::router::swap_exact_input",
            type_arguments=(_token_type(token_in), _token_type(token_out)),
            arguments=(str(amount_in), str(min_amount_out)),
        )
        return await self._submit(call, user, "swap", "Meridian", token_in, amount_in)

    async def add_liquidity(
        self,
        token_a: str,
        token_b: str,
        amount_a: int,
        amount_b: int,
        user: Optional[str] = None,
        min_a: int = 0,
        min_b: int = 0,
    ) -> TxResult:
        call = CallDescriptor(
            function=f"{self.dex_router}::router::add_liquidity",
            type_arguments=(_token_type(token_a), _token_type(token_b)),
            arguments=(str(amount_a), str(amount_b), str(min_a), str(min_b)),
        )
        return await self._submit(call, user, "add_liquidity", "Meridian", f"{token_a}/{token_b}", amount_a)

    async def remove_liquidity(self, token_a: str, token_b: str, lp_amount: int, user: Optional[str] = None) -> TxResult:
        call = CallDescriptor(
            function=f"{self.dex_router}::router::remove_liquidity",
            type_arguments=(_token_type(token_a), _token_type(token_b)),
            arguments=(str(lp_amount), "0", "0"),
        )
        return await self._submit(call, user, "remove_liquidity", "Meridian", f"{token_a}/{token_b}", lp_amount)

    async def get_reserves(self, token_a: str, token_b: str) -> Tuple[int, int]:
        """Pool reserves (reserve_a, reserve_b). Raises SourceUnavailableError."""
        call = CallDescriptor(
            function=f"{self.dex_router}::router::get_reserves",
            type_arguments=(_token_type(token_a), _token_type(token_b)),
        )
        result = await self.rpc.view(call)
        try:
            return int(result[0]), int(result[1])
        except (IndexError, TypeError, ValueError):
            raise SourceUnavailableError(self.rpc.SERVICE, f"unexpected get_reserves result: {result}")

    def get_supported_protocols(self) -> List[Dict[str, Any]]:
        protocols = []
        for slug, descriptor in PROTOCOLS.items():
            try:
                registry.resolve(slug)
                has_addresses = True
            except ResolutionError:
                has_addresses = False
            protocols.append({
                "slug": slug,
                "name": descriptor.name,
                "type": descriptor.type,
                "module": descriptor.module,
                "has_addresses": has_addresses,
            })
        return protocols


_router: Optional[ProtocolRouter] = None


def get_protocol_router() -> ProtocolRouter:
    global _router
    if _router is None:
        _router = ProtocolRouter()
    return _router
