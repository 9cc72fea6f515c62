"""
Movement GraphQL Indexer Client
User fungible-asset balances and transaction history.
"""
from typing import Optional, Dict, Any, List
import logging

from config import settings
from data_sources.http_source import HTTPSource
from protocols.errors import SourceUnavailableError

logger = logging.getLogger("MovementIndexer")

BALANCES_QUERY = """
query GetBalances($owner: String!, $limit: Int!) {
  current_fungible_asset_balances(
    where: {owner_address: {_eq: $owner}},
    limit: $limit
  ) {
    asset_type
    amount
    metadata {
      name
      symbol
      decimals
    }
  }
}
"""

TRANSACTIONS_QUERY = """
query GetUserTransactions($address: String, $limit: Int) {
  user_transactions(
    limit: $limit
    order_by: {timestamp: desc}
    where: {sender: {_eq: $address}}
  ) {
    version
    hash
    success
    timestamp
    entry_function_id_str
    gas_used
    vm_status
  }
}
"""


class IndexerClient(HTTPSource):
    SERVICE = "movement-indexer"
    BASE_URL = settings.MOVEMENT_GRAPHQL_URL

    async def query(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Run a GraphQL query. Raises SourceUnavailableError on transport or GraphQL errors."""
        body = await self._post_json("", {"query": query, "variables": variables or {}})
        if not isinstance(body, dict):
            raise SourceUnavailableError(self.SERVICE, "malformed GraphQL response")
        if body.get("errors"):
            raise SourceUnavailableError(self.SERVICE, f"GraphQL error: {body['errors'][0].get('message')}")
        return body.get("data") or {}

    async def get_user_balances(self, owner: str, limit: int = 50) -> Optional[List[Dict[str, Any]]]:
        """
        Raw balances for a wallet.

        Returns:
            list of {asset_type, amount, metadata}, [] for an empty wallet,
            None when the indexer could not be reached
        """
        try:
            data = await self.query(BALANCES_QUERY, {"owner": owner, "limit": limit})
        except SourceUnavailableError as e:
            logger.error(f"Balances unavailable for {owner}: {e}")
            return None
        return data.get("current_fungible_asset_balances") or []

    async def get_user_transactions(self, address: str, limit: int = 50) -> List[Dict[str, Any]]:
        try:
            data = await self.query(TRANSACTIONS_QUERY, {"address": address, "limit": limit})
        except SourceUnavailableError as e:
            logger.error(f"Transactions unavailable for {address}: {e}")
            return []
        return data.get("user_transactions") or []
