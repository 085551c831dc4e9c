import pytest

from rent_reclaim.config import Network, ReclaimConfig, default_rpc_url, explorer_url


def test_explicit_rpc_override_wins():
    env = {"RPC_URL": " https://my.rpc ", "HELIUS_API_KEY": "k"}
    assert default_rpc_url(Network.MAINNET_BETA, env) == "https://my.rpc"


def test_helius_url_per_network():
    env = {"HELIUS_API_KEY": "k"}
    assert default_rpc_url(Network.MAINNET_BETA, env) == "https://mainnet.helius-rpc.com/?api-key=k"
    assert default_rpc_url(Network.DEVNET, env) == "https://devnet.helius-rpc.com/?api-key=k"


def test_public_fallback():
    assert default_rpc_url(Network.DEVNET, {}) == "https://api.devnet.solana.com"


def test_from_env():
    config = ReclaimConfig.from_env({"SOLANA_NETWORK": "devnet", "DONATION_ADDRESS": "Donate111"})
    assert config.network is Network.DEVNET
    assert config.rpc_url == "https://api.devnet.solana.com"
    assert config.donation_address == "Donate111"


def test_from_env_arguments_override_environment():
    config = ReclaimConfig.from_env(
        {"SOLANA_NETWORK": "devnet", "DONATION_ADDRESS": "Donate111"},
        network="mainnet-beta",
        rpc_url="https://other.rpc",
        donation_address="Other111",
    )
    assert config.network is Network.MAINNET_BETA
    assert config.rpc_url == "https://other.rpc"
    assert config.donation_address == "Other111"


def test_blank_donation_address_is_none():
    assert ReclaimConfig.from_env({"DONATION_ADDRESS": "  "}).donation_address is None


def test_unknown_network():
    with pytest.raises(ValueError):
        ReclaimConfig.from_env({"SOLANA_NETWORK": "testnet"})


def test_explorer_url():
    assert explorer_url("sig") == "https://explorer.solana.com/tx/sig"
    assert explorer_url("sig", Network.DEVNET) == "https://explorer.solana.com/tx/sig?cluster=devnet"
