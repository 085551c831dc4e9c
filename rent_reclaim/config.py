"""Configuration supplied by the surrounding application.

Nothing in the scanner or builder reads the process environment; the caller
builds a ReclaimConfig (directly or with ``from_env``) and passes values in.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional

logger = logging.getLogger(__name__)


class Network(str, Enum):
    MAINNET_BETA = "mainnet-beta"
    DEVNET = "devnet"

    @property
    def label(self) -> str:
        return "Mainnet Beta" if self is Network.MAINNET_BETA else "Devnet"


PUBLIC_RPC_URLS = {
    Network.MAINNET_BETA: "https://api.mainnet-beta.solana.com",
    Network.DEVNET: "https://api.devnet.solana.com",
}

HELIUS_RPC_URLS = {
    Network.MAINNET_BETA: "https://mainnet.helius-rpc.com/?api-key={api_key}",
    Network.DEVNET: "https://devnet.helius-rpc.com/?api-key={api_key}",
}

EXPLORER_TX_URL = "https://explorer.solana.com/tx/{signature}"

DEFAULT_DONATION_PERCENTAGE = 5


def default_rpc_url(network: Network, env: Optional[Mapping[str, str]] = None) -> str:
    env = os.environ if env is None else env
    override = (env.get("RPC_URL") or env.get("SOLANA_URL") or "").strip()
    if override:
        return override
    api_key = (env.get("HELIUS_API_KEY") or "").strip()
    if api_key:
        return HELIUS_RPC_URLS[network].format(api_key=api_key)
    logger.warning("HELIUS_API_KEY not set; using public %s RPC (slower).", network.value)
    return PUBLIC_RPC_URLS[network]


def explorer_url(signature: str, network: Network = Network.MAINNET_BETA) -> str:
    url = EXPLORER_TX_URL.format(signature=signature)
    if network is not Network.MAINNET_BETA:
        url += f"?cluster={network.value}"
    return url


@dataclass(frozen=True)
class ReclaimConfig:
    rpc_url: str
    network: Network = Network.MAINNET_BETA
    donation_address: Optional[str] = None

    @classmethod
    def from_env(
        cls,
        env: Optional[Mapping[str, str]] = None,
        *,
        network: Optional[str] = None,
        rpc_url: Optional[str] = None,
        donation_address: Optional[str] = None,
    ) -> "ReclaimConfig":
        """Build a config from env vars; explicit arguments win over the environment.

        Env:
          - SOLANA_NETWORK (mainnet-beta | devnet, default mainnet-beta)
          - RPC_URL or SOLANA_URL, else HELIUS_API_KEY, else the public endpoint
          - DONATION_ADDRESS (optional)
        """
        env = os.environ if env is None else env
        net_name = (network or env.get("SOLANA_NETWORK") or Network.MAINNET_BETA.value).strip()
        try:
            net = Network(net_name)
        except ValueError as e:
            raise ValueError(f"Unknown network: {net_name!r}") from e

        url = (rpc_url or "").strip() or default_rpc_url(net, env)
        donation = (donation_address or env.get("DONATION_ADDRESS") or "").strip() or None
        return cls(rpc_url=url, network=net, donation_address=donation)

    def explorer_url(self, signature: str) -> str:
        return explorer_url(signature, self.network)
