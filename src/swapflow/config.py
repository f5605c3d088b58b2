"""Application configuration using pydantic-settings.

All values can be overridden through environment variables or a local
``.env`` file (e.g. ``LIFI_API_URL``, ``ETH_RPC_URL``, ``DRY_RUN``).
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=False, description="Enable debug logging")
    dry_run: bool = Field(
        default=False, description="Use the simulated aggregator instead of LI.FI"
    )

    # ======================
    # Aggregator (LI.FI)
    # ======================
    lifi_api_url: str = Field(default="https://li.quest/v1", description="LI.FI API base URL")
    lifi_integrator: str = Field(default="", description="Integrator string sent with quotes")
    lifi_api_key: str = Field(default="", description="Optional LI.FI API key")
    referrer_address: str = Field(
        default="", description="Address sent as the referrer parameter of quote requests"
    )
    http_timeout_seconds: float = Field(default=30.0, description="Aggregator HTTP timeout")

    # ======================
    # Swap engine
    # ======================
    quote_ttl_seconds: float = Field(
        default=60.0, description="Minimum delay between two identical quote requests"
    )
    status_poll_interval_seconds: float = Field(
        default=5.0, description="Delay between two cross-chain status polls"
    )
    receipt_timeout_seconds: int = Field(
        default=300, description="Maximum wait for a transaction receipt"
    )
    default_slippage: float = Field(default=0.01, description="Default slippage tolerance (1%)")
    default_order: str = Field(default="RECOMMENDED", description="Default route preference")

    # ======================
    # Wallet
    # ======================
    wallet_private_key: Optional[str] = Field(
        default=None, description="Hex private key used by the local EVM wallet"
    )

    # ======================
    # Chain RPC Endpoints
    # ======================
    eth_rpc_url: str = Field(default="https://eth.llamarpc.com", description="Ethereum RPC URL")
    optimism_rpc_url: str = Field(default="https://mainnet.optimism.io", description="Optimism RPC URL")
    bsc_rpc_url: str = Field(default="https://bsc-dataseed.binance.org", description="BSC RPC URL")
    polygon_rpc_url: str = Field(default="https://polygon-rpc.com", description="Polygon RPC URL")
    base_rpc_url: str = Field(default="https://mainnet.base.org", description="Base RPC URL")
    arbitrum_rpc_url: str = Field(default="https://arb1.arbitrum.io/rpc", description="Arbitrum RPC URL")
    avax_rpc_url: str = Field(
        default="https://api.avax.network/ext/bc/C/rpc", description="Avalanche RPC URL"
    )

    @property
    def has_wallet(self) -> bool:
        """Check if a private key is configured."""
        return bool(self.wallet_private_key)

    def get_rpc_url(self, chain_id: int) -> str:
        """Get RPC URL for an EVM chain id."""
        rpc_map = {
            1: self.eth_rpc_url,
            10: self.optimism_rpc_url,
            56: self.bsc_rpc_url,
            137: self.polygon_rpc_url,
            8453: self.base_rpc_url,
            42161: self.arbitrum_rpc_url,
            43114: self.avax_rpc_url,
        }
        return rpc_map.get(chain_id, "")

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "dry_run": self.dry_run,
            "lifi": {
                "api_url": self.lifi_api_url,
                "integrator": self.lifi_integrator or "(not set)",
                "api_key": "***" if self.lifi_api_key else "(not set)",
                "referrer": self.referrer_address or "(not set)",
            },
            "engine": {
                "quote_ttl_seconds": self.quote_ttl_seconds,
                "status_poll_interval_seconds": self.status_poll_interval_seconds,
                "receipt_timeout_seconds": self.receipt_timeout_seconds,
                "default_slippage": self.default_slippage,
                "default_order": self.default_order,
            },
            "wallet_configured": self.has_wallet,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
