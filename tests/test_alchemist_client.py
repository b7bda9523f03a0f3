from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from eth_abi import encode
from web3 import Web3

from conftest import ALCHEMIST, ALICE, BOB, CAROL, YIELD_TOKEN

from alchemix_earnings.core.exceptions import AuxiliaryReadError
from alchemix_earnings.services.alchemist_abi import event_signature, output_types
from alchemix_earnings.services.alchemist_client import AlchemistRpcClient, ContractCall, event_topics


def _client(batch_size: int = 500) -> AlchemistRpcClient:
    # No provider is contacted: every network call below is mocked.
    client = AlchemistRpcClient("http://localhost:8545", batch_size=batch_size, w3=Web3())
    client._multicall = MagicMock()
    return client


def _position(shares: int) -> tuple[bool, bytes]:
    return True, encode(["uint256", "uint256"], [shares, 0])


def _positions_calls(*owners: str) -> list[ContractCall]:
    return [ContractCall(ALCHEMIST, "positions", (o, YIELD_TOKEN)) for o in owners]


def test_output_types_flatten_struct_outputs() -> None:
    assert output_types("positions") == ["uint256", "uint256"]
    [params] = output_types("getYieldTokenParameters")
    assert params.startswith("(uint8,address,address,")
    assert params.endswith(",bool)")


def test_event_signatures() -> None:
    assert event_signature("Harvest") == "Harvest(address,uint256,uint256,uint256)"
    assert event_signature("Deposit") == "Deposit(address,address,uint256,address)"
    assert len(set(event_topics())) == 4


def test_multicall_decodes_results_in_call_order() -> None:
    client = _client()
    client._multicall.functions.aggregate3.return_value.call.return_value = [_position(7), _position(11)]

    assert client.multicall_sync(_positions_calls(ALICE, BOB), 99) == [(7, 0), (11, 0)]

    client._multicall.functions.aggregate3.return_value.call.assert_called_once_with(block_identifier=99)
    [payload] = client._multicall.functions.aggregate3.call_args.args
    assert [p["allowFailure"] for p in payload] == [False, False]
    assert all(p["target"] == Web3.to_checksum_address(ALCHEMIST) for p in payload)
    assert all(isinstance(p["callData"], bytes) and len(p["callData"]) == 4 + 64 for p in payload)


def test_multicall_splits_into_batches() -> None:
    client = _client(batch_size=2)
    client._multicall.functions.aggregate3.return_value.call.side_effect = [
        [_position(1), _position(2)],
        [_position(3)],
    ]

    results = client.multicall_sync(_positions_calls(ALICE, BOB, CAROL), 5)

    assert [r[0] for r in results] == [1, 2, 3]
    assert client._multicall.functions.aggregate3.call_count == 2


def test_multicall_rpc_failure_is_wrapped() -> None:
    client = _client()
    client._multicall.functions.aggregate3.return_value.call.side_effect = ValueError("timeout")

    with pytest.raises(AuxiliaryReadError) as err:
        client.multicall_sync(_positions_calls(ALICE), 5)
    assert err.value.function_name == "aggregate3"
    assert err.value.block_number == 5


def test_multicall_failed_slot_respects_allow_failure() -> None:
    client = _client()
    client._multicall.functions.aggregate3.return_value.call.return_value = [(False, b""), _position(4)]

    with pytest.raises(AuxiliaryReadError):
        client.multicall_sync(_positions_calls(ALICE, BOB), 5)

    assert client.multicall_sync(_positions_calls(ALICE, BOB), 5, allow_failure=True) == [None, (4, 0)]


def test_decode_single_struct_output_returns_the_tuple() -> None:
    client = _client()
    types = output_types("getYieldTokenParameters")
    values = [18, ALICE, BOB] + [0] * 5 + [12345] + [0] * 5 + [True]
    data = encode(types, [tuple(values)])

    decoded = client._decode(ContractCall(ALCHEMIST, "getYieldTokenParameters", (YIELD_TOKEN,)), data)

    assert decoded[0] == 18
    assert decoded[8] == 12345
    assert decoded[14] is True


def test_read_contract_failure_is_wrapped(monkeypatch) -> None:
    client = _client()
    bound = MagicMock()
    bound.call.side_effect = ValueError("execution reverted")
    monkeypatch.setattr(client, "_bound_function", lambda call: bound)

    with pytest.raises(AuxiliaryReadError) as err:
        client.read_contract_sync(ContractCall(ALCHEMIST, "protocolFee"), 77)
    assert err.value.function_name == "protocolFee"
    bound.call.assert_called_once_with(block_identifier=77)


@pytest.mark.asyncio
async def test_async_multicall_runs_sync_path() -> None:
    client = _client()
    client._multicall.functions.aggregate3.return_value.call.return_value = [_position(9)]

    assert await client.multicall(_positions_calls(ALICE), 1) == [(9, 0)]
