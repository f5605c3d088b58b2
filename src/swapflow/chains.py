"""EVM chain metadata used by the swap engine.

Only the information the engine needs is kept here: the native coin of
each chain (for balance refreshes and allowance short-circuits) and the
default RPC endpoint (overridable through settings).
"""

from dataclasses import dataclass
from typing import Optional

from swapflow.config import get_settings


@dataclass
class ChainConfig:
    """Configuration for an EVM chain."""

    name: str
    chain_id: int
    native_symbol: str
    rpc_url: str
    explorer_url: str
    native_name: str = ""
    native_decimals: int = 18


# ======================
# Chain Configurations
# ======================

CHAINS: dict[int, ChainConfig] = {
    1: ChainConfig(
        name="Ethereum",
        chain_id=1,
        native_symbol="ETH",
        native_name="Ether",
        rpc_url="https://eth.llamarpc.com",
        explorer_url="https://etherscan.io",
    ),
    10: ChainConfig(
        name="Optimism",
        chain_id=10,
        native_symbol="ETH",
        native_name="Ether",
        rpc_url="https://mainnet.optimism.io",
        explorer_url="https://optimistic.etherscan.io",
    ),
    56: ChainConfig(
        name="BNB Smart Chain",
        chain_id=56,
        native_symbol="BNB",
        native_name="BNB",
        rpc_url="https://bsc-dataseed.binance.org",
        explorer_url="https://bscscan.com",
    ),
    137: ChainConfig(
        name="Polygon",
        chain_id=137,
        native_symbol="POL",
        native_name="Polygon Ecosystem Token",
        rpc_url="https://polygon-rpc.com",
        explorer_url="https://polygonscan.com",
    ),
    8453: ChainConfig(
        name="Base",
        chain_id=8453,
        native_symbol="ETH",
        native_name="Ether",
        rpc_url="https://mainnet.base.org",
        explorer_url="https://basescan.org",
    ),
    42161: ChainConfig(
        name="Arbitrum One",
        chain_id=42161,
        native_symbol="ETH",
        native_name="Ether",
        rpc_url="https://arb1.arbitrum.io/rpc",
        explorer_url="https://arbiscan.io",
    ),
    43114: ChainConfig(
        name="Avalanche C-Chain",
        chain_id=43114,
        native_symbol="AVAX",
        native_name="Avalanche",
        rpc_url="https://api.avax.network/ext/bc/C/rpc",
        explorer_url="https://snowtrace.io",
    ),
}


def get_chain(chain_id: int) -> Optional[ChainConfig]:
    """Get chain configuration by chain id."""
    return CHAINS.get(chain_id)


def get_all_chains() -> list[ChainConfig]:
    """Get all chain configurations."""
    return list(CHAINS.values())


def get_rpc_url(chain_id: int) -> Optional[str]:
    """Get RPC URL for a chain, preferring the configured override."""
    configured = get_settings().get_rpc_url(chain_id)
    if configured:
        return configured
    chain = get_chain(chain_id)
    return chain.rpc_url if chain else None


def get_native_symbol(chain_id: int) -> str:
    """Symbol of the chain's native coin (ETH when unknown)."""
    chain = get_chain(chain_id)
    return chain.native_symbol if chain else "ETH"


def get_native_decimals(chain_id: int) -> int:
    chain = get_chain(chain_id)
    return chain.native_decimals if chain else 18
