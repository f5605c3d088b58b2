"""Tests for settings and chain metadata."""

from swapflow import chains
from swapflow.config import Settings


class TestSettings:
    """Tests for Settings."""

    def test_safe_dict_redacts_secrets(self):
        settings = Settings(lifi_api_key="secret-key", wallet_private_key="0x" + "11" * 32)

        safe = settings.get_safe_dict()

        assert safe["lifi"]["api_key"] == "***"
        assert safe["wallet_configured"] is True
        assert "secret-key" not in str(safe)
        assert "11" * 32 not in str(safe)

    def test_unset_values(self):
        settings = Settings(lifi_api_key="", referrer_address="", wallet_private_key=None)

        safe = settings.get_safe_dict()

        assert safe["lifi"]["api_key"] == "(not set)"
        assert safe["lifi"]["referrer"] == "(not set)"
        assert settings.has_wallet is False

    def test_rpc_url_by_chain_id(self):
        settings = Settings(optimism_rpc_url="https://op.example")

        assert settings.get_rpc_url(10) == "https://op.example"
        assert settings.get_rpc_url(999) == ""


class TestChains:
    """Tests for the chain table."""

    def test_native_metadata(self):
        assert chains.get_native_symbol(56) == "BNB"
        assert chains.get_native_symbol(137) == "POL"
        assert chains.get_native_decimals(1) == 18

    def test_unknown_chain_defaults(self):
        assert chains.get_chain(999) is None
        assert chains.get_native_symbol(999) == "ETH"
        assert chains.get_rpc_url(999) is None

    def test_all_chains_keyed_by_id(self):
        for chain in chains.get_all_chains():
            assert chains.get_chain(chain.chain_id) is chain
