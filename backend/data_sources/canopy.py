"""
Canopy Vault Fetcher
Reads vault and strategy state from the Canopy controller's vaults_view.

The controller can return several vault records for one asset (old
deployments are never removed). Only the largest-TVL record per asset is kept.
"""
from typing import Optional, Dict, Any, List
import logging

from config.contracts import CANOPY
from data_sources.movement_rpc import MovementRPCClient
from protocols.errors import SourceUnavailableError
from protocols.models import CallDescriptor, Strategy, Vault
from protocols import registry

logger = logging.getLogger("Canopy")


def parse_amount(raw: Any, decimals: int) -> float:
    """Raw u64/u128 string -> float in asset units, 0 for junk"""
    if raw in (None, ""):
        return 0.0
    try:
        return float(raw) / (10 ** int(decimals))
    except (TypeError, ValueError):
        return 0.0


def parse_strategy(raw: Dict[str, Any], decimals: int) -> Strategy:
    last_report = raw.get("last_report")
    return Strategy(
        address=raw.get("strategy_address", ""),
        concrete_address=raw.get("concrete_address", ""),
        name=registry.strategy_name(raw.get("concrete_address")),
        total_asset=parse_amount(raw.get("total_asset"), decimals),
        total_shares=parse_amount(raw.get("total_shares"), decimals),
        total_profit=parse_amount(raw.get("total_profit"), decimals),
        total_loss=parse_amount(raw.get("total_loss"), decimals),
        current_debt=parse_amount(raw.get("current_vault_debt"), decimals),
        debt_limit=parse_amount(raw.get("debt_limit"), decimals),
        last_report_timestamp=int(last_report) if last_report else None,
    )


def parse_vaults(raw_vaults: Any) -> List[Vault]:
    """
    Normalize raw vaults_view records.
    Duplicate records for one asset resolve to the one with the larger TVL.
    """
    if not isinstance(raw_vaults, list):
        return []

    by_asset: Dict[str, Vault] = {}
    for raw in raw_vaults:
        if not isinstance(raw, dict):
            logger.warning(f"Skipping non-object vault record: {raw!r}")
            continue
        asset = raw.get("asset_name")
        if not asset or not isinstance(asset, str):
            continue

        try:
            decimals = int(raw.get("decimals") or 0)
            strategies = [
                parse_strategy(s, decimals)
                for s in raw.get("strategies") or []
                if isinstance(s, dict)
            ]
        except (AttributeError, TypeError, ValueError) as e:
            logger.warning(f"Skipping malformed {asset} vault record: {e}")
            continue

        tvl = parse_amount(raw.get("total_asset"), decimals)
        existing = by_asset.get(asset)
        if existing is not None and tvl <= existing.tvl:
            continue

        by_asset[asset] = Vault(
            asset=asset,
            address=raw.get("vault_address", ""),
            decimals=decimals,
            tvl=tvl,
            total_debt=parse_amount(raw.get("total_debt"), decimals),
            total_shares=parse_amount(raw.get("total_shares"), decimals),
            shares_address=raw.get("shares_address"),
            shares_name=raw.get("shares_name"),
            strategies=strategies,
        )

    return list(by_asset.values())


class CanopyFetcher:
    """On-chain reader for the Canopy controller"""

    def __init__(self, rpc: Optional[MovementRPCClient] = None, controller: str = CANOPY["controller"]):
        self.rpc = rpc or MovementRPCClient()
        self.controller = controller

    async def fetch_vaults(self, offset: int = 0, limit: int = 20) -> List[Vault]:
        """vaults_view page, parsed. Raises SourceUnavailableError."""
        call = CallDescriptor(
            function=f"{self.controller}::vault::vaults_view",
            arguments=(str(offset), str(limit)),
        )
        result = await self.rpc.view(call)
        if not result:
            logger.warning("Canopy vaults_view returned no data")
            return []

        # Shape is [{limit, offset, total_count, vaults: [...]}]
        page = result[0]
        raw_vaults = page.get("vaults") if isinstance(page, dict) else page
        vaults = parse_vaults(raw_vaults)
        logger.info(f"🌳 Canopy: {len(vaults)} vaults")
        return vaults

    async def get_all_vaults(self, offset: int = 0, limit: int = 20) -> List[Vault]:
        try:
            return await self.fetch_vaults(offset, limit)
        except SourceUnavailableError as e:
            logger.error(f"Canopy vaults_view failed: {e}")
            return []

    async def get_vault(self, asset: str) -> Optional[Vault]:
        return registry.resolve_vault(asset, await self.get_all_vaults())
