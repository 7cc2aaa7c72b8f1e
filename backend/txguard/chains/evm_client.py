"""
EVM chain state access for Ethereum, BSC and other EVM-compatible chains.

Exposes the three chain capabilities the review engine needs: the current
chain id, the user's connected accounts, and whether an address holds code.
"""
from __future__ import annotations

from typing import Dict, List, Optional, Protocol, Sequence

from web3 import AsyncHTTPProvider, AsyncWeb3, Web3

from ..analysis.models import AccountKind
from .chain_policy import normalize_chain_id
from ..core.exceptions import ChainStateError
from ..core.logging import get_logger
from ..core.retry import retry
from ..core.settings import Settings, get_settings

logger = get_logger(__name__)


class ChainStateProvider(Protocol):
    """Chain queries supplied by the wallet host."""

    async def resolve_chain_id(self) -> Optional[str]:
        ...

    async def has_code(self, address: str) -> bool:
        ...

    async def list_connected_accounts(self) -> List[str]:
        ...


class AccountClassifier:
    """
    Classifies a destination address as an EOA or a contract.

    A single bytecode lookup per address; retries belong to the chain
    state provider.
    """

    def __init__(self, chain_state: ChainStateProvider) -> None:
        self.chain_state = chain_state

    async def classify(self, address: Optional[str]) -> AccountKind:
        """
        Classify an address.

        Args:
            address: Destination address, None for contract creation

        Returns:
            AccountKind.CONTRACT when code is present or the transaction
            creates a contract, EXTERNALLY_OWNED otherwise

        Raises:
            ChainStateError: If the bytecode lookup fails
        """
        if address is None:
            return AccountKind.CONTRACT
        if await self.chain_state.has_code(address):
            return AccountKind.CONTRACT
        return AccountKind.EXTERNALLY_OWNED


_web3_instances: Dict[str, AsyncWeb3] = {}


def get_web3(rpc_url: str) -> AsyncWeb3:
    """Return a shared AsyncWeb3 instance for an RPC endpoint."""
    if rpc_url not in _web3_instances:
        _web3_instances[rpc_url] = AsyncWeb3(AsyncHTTPProvider(rpc_url))
        logger.info(
            "Created EVM RPC client",
            extra={'extra_data': {'rpc_url': rpc_url.split("?")[0]}}
        )
    return _web3_instances[rpc_url]


class EvmChainState:
    """
    Chain state for one wallet request.

    The wallet reports its chain id and connected accounts with the
    transaction; bytecode presence is read from the chain's RPC endpoint.
    """

    def __init__(
        self,
        chain_id: Optional[str],
        accounts: Sequence[str] = (),
        settings: Optional[Settings] = None,
        web3: Optional[AsyncWeb3] = None,
    ) -> None:
        self._chain_id = chain_id
        self._rpc_chain_id = normalize_chain_id(chain_id)
        self._accounts = list(accounts)
        self._settings = settings or get_settings()
        self._web3 = web3

    async def resolve_chain_id(self) -> Optional[str]:
        return self._chain_id

    async def list_connected_accounts(self) -> List[str]:
        return list(self._accounts)

    def _client(self) -> AsyncWeb3:
        if self._web3 is not None:
            return self._web3
        rpc_url = self._settings.get_rpc_url(self._rpc_chain_id)
        if not rpc_url:
            raise ChainStateError(
                f"No RPC endpoint configured for chain {self._rpc_chain_id}",
                details={"chain_id": self._rpc_chain_id}
            )
        self._web3 = get_web3(rpc_url)
        return self._web3

    @retry(max_attempts=2, initial_delay=0.2, max_delay=1.0, retryable_exceptions=(OSError, TimeoutError))
    async def _get_code(self, address: str) -> bytes:
        return await self._client().eth.get_code(address)

    async def has_code(self, address: str) -> bool:
        """
        Check whether executable code is deployed at an address.

        Raises:
            ChainStateError: If the address is malformed or the RPC call fails
        """
        try:
            checksum = Web3.to_checksum_address(address)
        except (ValueError, TypeError) as e:
            raise ChainStateError(
                f"Invalid address: {address}",
                details={"address": address}
            ) from e

        try:
            code = await self._get_code(checksum)
        except ChainStateError:
            raise
        except Exception as e:
            logger.error(
                f"Bytecode lookup failed for {address}: {e}",
                extra={'chain_id': self._chain_id}
            )
            raise ChainStateError(
                f"Bytecode lookup failed for {address}",
                details={"address": address, "chain_id": self._chain_id}
            ) from e

        return len(code) > 0
