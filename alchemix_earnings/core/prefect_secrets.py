from __future__ import annotations

import os
from typing import Optional


def load_prefect_secret(block_name: str) -> Optional[str]:
    """Load a Prefect Secret block value by name.

    Returns None if Prefect isn't available, credentials are missing, or the block
    does not exist. Secrets are optional for local runs, so lookup failures never
    propagate.
    """
    try:
        from prefect.blocks.system import Secret
        from prefect.utilities.asyncutils import run_coro_as_sync

        # `load()` may return an awaitable depending on the Prefect version.
        if hasattr(Secret, "aload"):
            block = run_coro_as_sync(Secret.aload(block_name))
        else:
            block = Secret.load(block_name)

        value = block.get()
    except Exception:
        return None

    if value is None:
        return None
    value = str(value).strip()
    return value or None


def env_or_prefect_secret(env_key: str, block_name: str) -> Optional[str]:
    """Return an env var if present, else try a Prefect Secret block."""
    value = os.getenv(env_key)
    if value is not None and value.strip():
        return value.strip()
    return load_prefect_secret(block_name)


def rpc_secret_block_name(network: str) -> str:
    """Secret block naming used for RPC endpoints, e.g. `arbitrum-rpc-url`."""
    return f"{network.lower()}-rpc-url"
