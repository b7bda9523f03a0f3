"""Minimal ABI fragments for AlchemistV2 and Multicall3."""

from __future__ import annotations

from typing import Any

ALCHEMIST_V2_ABI: list[dict[str, Any]] = [
    # --- events ---
    {
        "anonymous": False,
        "name": "AddYieldToken",
        "type": "event",
        "inputs": [{"indexed": True, "internalType": "address", "name": "yieldToken", "type": "address"}],
    },
    {
        "anonymous": False,
        "name": "Deposit",
        "type": "event",
        "inputs": [
            {"indexed": True, "internalType": "address", "name": "sender", "type": "address"},
            {"indexed": True, "internalType": "address", "name": "yieldToken", "type": "address"},
            {"indexed": False, "internalType": "uint256", "name": "amount", "type": "uint256"},
            {"indexed": False, "internalType": "address", "name": "recipient", "type": "address"},
        ],
    },
    {
        "anonymous": False,
        "name": "Harvest",
        "type": "event",
        "inputs": [
            {"indexed": True, "internalType": "address", "name": "yieldToken", "type": "address"},
            {"indexed": False, "internalType": "uint256", "name": "minimumAmountOut", "type": "uint256"},
            {"indexed": False, "internalType": "uint256", "name": "totalHarvested", "type": "uint256"},
            {"indexed": False, "internalType": "uint256", "name": "credit", "type": "uint256"},
        ],
    },
    {
        "anonymous": False,
        "name": "Donate",
        "type": "event",
        "inputs": [
            {"indexed": True, "internalType": "address", "name": "sender", "type": "address"},
            {"indexed": True, "internalType": "address", "name": "yieldToken", "type": "address"},
            {"indexed": False, "internalType": "uint256", "name": "amount", "type": "uint256"},
        ],
    },
    # --- views ---
    {
        "inputs": [],
        "name": "protocolFee",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [
            {"internalType": "address", "name": "owner", "type": "address"},
            {"internalType": "address", "name": "yieldToken", "type": "address"},
        ],
        "name": "positions",
        "outputs": [
            {"internalType": "uint256", "name": "shares", "type": "uint256"},
            {"internalType": "uint256", "name": "lastAccruedWeight", "type": "uint256"},
        ],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"internalType": "address", "name": "yieldToken", "type": "address"}],
        "name": "getYieldTokenParameters",
        "outputs": [
            {
                "components": [
                    {"internalType": "uint8", "name": "decimals", "type": "uint8"},
                    {"internalType": "address", "name": "underlyingToken", "type": "address"},
                    {"internalType": "address", "name": "adapter", "type": "address"},
                    {"internalType": "uint256", "name": "maximumLoss", "type": "uint256"},
                    {"internalType": "uint256", "name": "maximumExpectedValue", "type": "uint256"},
                    {"internalType": "uint256", "name": "creditUnlockRate", "type": "uint256"},
                    {"internalType": "uint256", "name": "activeBalance", "type": "uint256"},
                    {"internalType": "uint256", "name": "harvestableBalance", "type": "uint256"},
                    {"internalType": "uint256", "name": "totalShares", "type": "uint256"},
                    {"internalType": "uint256", "name": "expectedValue", "type": "uint256"},
                    {"internalType": "uint256", "name": "pendingCredit", "type": "uint256"},
                    {"internalType": "uint256", "name": "distributedCredit", "type": "uint256"},
                    {"internalType": "uint256", "name": "lastDistributionBlock", "type": "uint256"},
                    {"internalType": "uint256", "name": "accruedWeight", "type": "uint256"},
                    {"internalType": "bool", "name": "enabled", "type": "bool"},
                ],
                "internalType": "struct IAlchemistV2State.YieldTokenParams",
                "name": "params",
                "type": "tuple",
            }
        ],
        "stateMutability": "view",
        "type": "function",
    },
]

# Positions in the YieldTokenParams tuple
YIELD_TOKEN_PARAMS_DECIMALS = 0
YIELD_TOKEN_PARAMS_TOTAL_SHARES = 8

MULTICALL3_ABI: list[dict[str, Any]] = [
    {
        "inputs": [
            {
                "components": [
                    {"internalType": "address", "name": "target", "type": "address"},
                    {"internalType": "bool", "name": "allowFailure", "type": "bool"},
                    {"internalType": "bytes", "name": "callData", "type": "bytes"},
                ],
                "internalType": "struct Multicall3.Call3[]",
                "name": "calls",
                "type": "tuple[]",
            }
        ],
        "name": "aggregate3",
        "outputs": [
            {
                "components": [
                    {"internalType": "bool", "name": "success", "type": "bool"},
                    {"internalType": "bytes", "name": "returnData", "type": "bytes"},
                ],
                "internalType": "struct Multicall3.Result[]",
                "name": "returnData",
                "type": "tuple[]",
            }
        ],
        "stateMutability": "payable",
        "type": "function",
    },
]

ALCHEMIST_EVENT_NAMES = ("AddYieldToken", "Deposit", "Harvest", "Donate")


def function_abi(name: str) -> dict[str, Any]:
    for entry in ALCHEMIST_V2_ABI:
        if entry.get("type") == "function" and entry.get("name") == name:
            return entry
    raise KeyError(f"AlchemistV2 ABI has no function {name!r}")


def _abi_type(param: dict[str, Any]) -> str:
    kind = param["type"]
    if kind.startswith("tuple"):
        inner = ",".join(_abi_type(c) for c in param.get("components", []))
        return f"({inner}){kind[len('tuple'):]}"
    return kind


def output_types(name: str) -> list[str]:
    """eth-abi type strings for a function's outputs, e.g. ["uint256", "uint256"]."""
    return [_abi_type(o) for o in function_abi(name)["outputs"]]


def event_signature(name: str) -> str:
    for entry in ALCHEMIST_V2_ABI:
        if entry.get("type") == "event" and entry.get("name") == name:
            types = ",".join(_abi_type(i) for i in entry["inputs"])
            return f"{name}({types})"
    raise KeyError(f"AlchemistV2 ABI has no event {name!r}")
