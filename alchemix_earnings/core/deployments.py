"""AlchemistV2 deployments indexed per network.

Each network lists the alchemist proxies (alUSD and alETH) and the block at
which indexing starts.
"""

from __future__ import annotations

from dataclasses import dataclass

from .config import settings
from .exceptions import UnknownNetworkError
from .prefect_secrets import env_or_prefect_secret, rpc_secret_block_name


@dataclass(frozen=True)
class AlchemistDeployment:
    network: str
    chain_id: int
    alchemists: tuple[str, ...]
    start_block: int


DEPLOYMENTS: dict[str, AlchemistDeployment] = {
    "mainnet": AlchemistDeployment(
        network="mainnet",
        chain_id=1,
        alchemists=(
            "0x5C6374a2ac4EBC38DeA0Fc1F8716e5Ea1AdD94dd",
            "0x062Bf725dC4cDF947aa79Ca2aaCCD4F385b13b5c",
        ),
        start_block=14265993,
    ),
    "arbitrum": AlchemistDeployment(
        network="arbitrum",
        chain_id=42161,
        alchemists=(
            "0xb46eE2E4165F629b4aBCE04B7Eb4237f951AC66F",
            "0x654e16a0b161b150F5d1C8a5ba6E7A7B7760703A",
        ),
        start_block=107216358,
    ),
    "optimism": AlchemistDeployment(
        network="optimism",
        chain_id=10,
        alchemists=(
            "0x10294d57A419C8eb78C648372c5bAA27fD1484af",
            "0xe04Bb5B4de60FA2fBa69a93adE13A8B3B569d5B4",
        ),
        start_block=23165435,
    ),
}


def get_deployment(network: str) -> AlchemistDeployment:
    try:
        return DEPLOYMENTS[network.lower()]
    except KeyError:
        raise UnknownNetworkError(network) from None


def rpc_url_for(network: str) -> str:
    """Resolve the RPC endpoint for `network` from settings, env or a Prefect Secret."""
    deployment = get_deployment(network)
    env_key = f"{deployment.network.upper()}_RPC_URL"
    url = getattr(settings, env_key, None) or env_or_prefect_secret(
        env_key, rpc_secret_block_name(deployment.network)
    )
    if not url:
        raise UnknownNetworkError(network, "no RPC URL configured")
    return url
