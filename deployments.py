#!/usr/bin/env python3
"""Create Prefect v3 deployments for the alchemist-sync flow.

One deployment per indexed network, each pulling code from remote storage:

	flow.from_source(source=..., entrypoint=...).deploy(...)
"""

from __future__ import annotations

import argparse
from dataclasses import dataclass, field
from typing import Any
from prefect.schedules import Cron


ENTRYPOINT = "alchemix_earnings/pipelines/flows/sync_alchemist.py:sync_alchemist_flow"


@dataclass(frozen=True)
class DeploymentSpec:
	name: str
	network: str
	cron: str
	parameters: dict[str, Any] = field(default_factory=dict)


DEPLOYMENTS: tuple[DeploymentSpec, ...] = (
	DeploymentSpec(name="hourly-sync-mainnet", network="mainnet", cron="5 * * * *"),
	DeploymentSpec(name="hourly-sync-arbitrum", network="arbitrum", cron="15 * * * *"),
	DeploymentSpec(name="hourly-sync-optimism", network="optimism", cron="25 * * * *"),
)


def _build_source(source: str, ref: str | None) -> Any:
	"""Return a `source` value compatible with `flow.from_source`."""
	if not ref:
		return source

	from prefect.runner.storage import GitRepository

	return GitRepository(url=source, reference=ref)


def deploy_from_source(
	*,
	source: str,
	ref: str | None,
	work_pool_name: str,
	work_queue_name: str | None,
	image: str | None,
	timezone: str | None,
	networks: list[str] | None = None,
) -> None:
	from prefect import flow

	src = _build_source(source, ref)

	errors: list[str] = []
	for spec in DEPLOYMENTS:
		if networks and spec.network not in networks:
			continue
		try:
			remote_flow = flow.from_source(source=src, entrypoint=ENTRYPOINT)

			deploy_kwargs: dict[str, Any] = {
				"name": spec.name,
				"work_pool_name": work_pool_name,
				"parameters": {"network": spec.network, **spec.parameters},
				"schedules": [Cron(spec.cron, timezone=timezone)],
			}
			if work_queue_name:
				deploy_kwargs["work_queue_name"] = work_queue_name
			if image:
				deploy_kwargs["job_variables"] = {"image": image}

			remote_flow.deploy(**deploy_kwargs)
			print(f"Deployed {spec.name}")
		except Exception as exc:
			errors.append(f"{spec.name}: {exc}")

	if errors:
		msg = "One or more deployments failed:\n" + "\n".join(f"- {e}" for e in errors)
		raise SystemExit(msg)


def main() -> None:
	p = argparse.ArgumentParser(description="Create Prefect deployments for alchemist-sync via remote code storage.")
	p.add_argument("--work-pool", required=True, help="Prefect work pool name")
	p.add_argument("--work-queue", default=None, help="Optional work queue name")
	p.add_argument(
		"--source",
		required=True,
		help="Remote code storage source (git URL, s3://, gs://, az://).",
	)
	p.add_argument("--ref", default=None, help="Optional git ref (branch/tag/commit).")
	p.add_argument("--image", default=None, help="Optional image override via job variables.")
	p.add_argument("--timezone", default="UTC", help="Schedule timezone for the cron (default: UTC).")
	p.add_argument(
		"--network",
		action="append",
		dest="networks",
		default=None,
		help="Only deploy for this network (repeatable). Default: all networks.",
	)
	args = p.parse_args()

	deploy_from_source(
		source=args.source,
		ref=args.ref,
		work_pool_name=args.work_pool,
		work_queue_name=args.work_queue,
		image=args.image,
		timezone=args.timezone,
		networks=args.networks,
	)


if __name__ == "__main__":
	main()
