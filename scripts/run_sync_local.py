import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path


def _parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Run the Prefect alchemist-sync flow locally")
    p.add_argument(
        "--network",
        default="mainnet",
        help="Network to index (mainnet, arbitrum, optimism).",
    )
    p.add_argument(
        "--to-block",
        type=int,
        default=None,
        help="Last block to index. Default is the chain head minus CONFIRMATIONS.",
    )
    p.add_argument(
        "--use-prefect-api",
        action="store_true",
        help="Use PREFECT_API_URL/PREFECT_API_KEY from the environment if set. Default is local/ephemeral execution.",
    )
    return p.parse_args()


def _maybe_set_ephemeral_prefect_env(use_prefect_api: bool) -> None:
    if use_prefect_api:
        return
    # Ensure local execution doesn't depend on Prefect server/cloud.
    os.environ.pop("PREFECT_API_URL", None)
    os.environ.pop("PREFECT_API_KEY", None)
    os.environ.setdefault("PREFECT_SERVER_ALLOW_EPHEMERAL_MODE", "true")


async def _run(network: str, to_block: int | None) -> int:
    from alchemix_earnings.pipelines.flows.sync_alchemist import sync_alchemist_flow

    applied = await sync_alchemist_flow(network=network, to_block=to_block)
    print(f"Done ({network}): events applied={applied}")
    return 0


def main() -> int:
    args = _parse_args()

    # Ensure `import alchemix_earnings...` works when running from the repo root.
    repo_root = Path(__file__).resolve().parents[1]
    if str(repo_root) not in sys.path:
        sys.path.insert(0, str(repo_root))

    from alchemix_earnings.core.config import settings

    logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
    _maybe_set_ephemeral_prefect_env(args.use_prefect_api)

    return asyncio.run(_run(args.network, args.to_block))


if __name__ == "__main__":
    raise SystemExit(main())
