from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
import requests
from eth_account import Account
from web3 import Web3
from web3.exceptions import ContractLogicError, TransactionNotFound

from chain_client import ChainClient, Err, Ok, Receipt, RemoteErrorKind, TransactionHandle
from errors import ConfigurationError

SIGNING_KEY = "0x" + "11" * 32
TX_HASH = "0x" + "ab" * 32


def make_client():
    w3 = MagicMock()
    return ChainClient(w3, Account.from_key(SIGNING_KEY), poll_interval=0), w3


def contract_fn(w3, method):
    return getattr(w3.eth.contract.return_value.functions, method).return_value


def unsigned_tx():
    return {
        "to": Web3.to_checksum_address("0x" + "cd" * 20),
        "data": "0x",
        "value": 0,
        "gas": 100_000,
        "gasPrice": 1_000_000_000,
        "nonce": 0,
        "chainId": 31337,
    }


# --- connect ---


@pytest.mark.parametrize(
    "rpc_url,key",
    [
        (None, SIGNING_KEY),
        ("", SIGNING_KEY),
        ("http://127.0.0.1:8545", None),
        ("http://127.0.0.1:8545", ""),
        ("ws://127.0.0.1:8545", SIGNING_KEY),
        ("http://127.0.0.1:8545", "0x1234"),
        ("http://127.0.0.1:8545", "not-a-key"),
    ],
)
def test_connect_rejects_missing_or_malformed_settings(rpc_url, key):
    with pytest.raises(ConfigurationError):
        ChainClient.connect(rpc_url, key)


def test_connect_accepts_key_without_prefix():
    client = ChainClient.connect("http://127.0.0.1:8545", SIGNING_KEY[2:], poll_interval=0.5)
    assert client.address == Account.from_key(SIGNING_KEY).address
    assert client.poll_interval == 0.5


# --- call ---


def test_call_returns_ok_value(binding):
    client, w3 = make_client()
    contract_fn(w3, "getVotesCount").call.return_value = 12

    result = client.call(binding, "getVotesCount", [2])

    assert result == Ok(12)
    w3.eth.contract.assert_called_once_with(address=binding.address, abi=list(binding.abi))
    w3.eth.contract.return_value.functions.getVotesCount.assert_called_once_with(2)
    contract_fn(w3, "getVotesCount").call.assert_called_once_with({"from": client.address})


def test_call_maps_revert(binding):
    client, w3 = make_client()
    contract_fn(w3, "winner").call.side_effect = ContractLogicError("execution reverted: Votacao nao encerrada")

    result = client.call(binding, "winner")

    assert isinstance(result, Err)
    assert result.kind is RemoteErrorKind.REVERT
    assert "Votacao nao encerrada" in result.message


def test_call_maps_network_failure(binding):
    client, w3 = make_client()
    contract_fn(w3, "votingStartTime").call.side_effect = requests.exceptions.ConnectionError("refused")

    result = client.call(binding, "votingStartTime")

    assert result == Err(RemoteErrorKind.NETWORK, "refused")


def test_call_rejects_methods_outside_read_catalogue(binding):
    client, w3 = make_client()
    with pytest.raises(ValueError):
        client.call(binding, "vote", ["0x" + "ab" * 20, 1])
    with pytest.raises(KeyError):
        client.call(binding, "selfdestruct")
    w3.eth.contract.assert_not_called()


# --- send ---


def test_send_signs_and_broadcasts(binding):
    client, w3 = make_client()
    w3.eth.get_transaction_count.return_value = 4
    contract_fn(w3, "addCandidate").build_transaction.return_value = unsigned_tx()
    w3.eth.send_raw_transaction.return_value = bytes.fromhex(TX_HASH[2:])

    result = client.send(binding, "addCandidate", ["Alice"])

    assert isinstance(result, Ok)
    assert isinstance(result.value, TransactionHandle)
    assert result.value.tx_hash == TX_HASH
    w3.eth.get_transaction_count.assert_called_once_with(client.address, "pending")
    contract_fn(w3, "addCandidate").build_transaction.assert_called_once_with(
        {"from": client.address, "nonce": 4}
    )
    expected_raw = Account.from_key(SIGNING_KEY).sign_transaction(unsigned_tx()).raw_transaction
    w3.eth.send_raw_transaction.assert_called_once_with(expected_raw)


def test_send_revert_during_estimation_is_not_broadcast(binding):
    client, w3 = make_client()
    w3.eth.get_transaction_count.return_value = 0
    contract_fn(w3, "vote").build_transaction.side_effect = ContractLogicError(
        "execution reverted: Eleitor ja votou"
    )

    result = client.send(binding, "vote", ["0x" + "ab" * 20, 1])

    assert isinstance(result, Err)
    assert result.kind is RemoteErrorKind.REVERT
    assert "Eleitor ja votou" in result.message
    w3.eth.send_raw_transaction.assert_not_called()


def test_send_rejects_read_methods(binding):
    client, _ = make_client()
    with pytest.raises(ValueError):
        client.send(binding, "winner")


# --- finality ---


def test_await_finality_polls_until_receipt():
    w3 = MagicMock()
    w3.eth.get_transaction_receipt.side_effect = [
        TransactionNotFound("pending"),
        TransactionNotFound("pending"),
        {"status": 1, "blockNumber": 9},
    ]
    handle = TransactionHandle(w3, TX_HASH, poll_interval=0.25)

    with patch("chain_client.time.sleep") as sleep:
        result = handle.await_finality()

    assert result == Ok(Receipt(TX_HASH, 9, 1))
    assert sleep.call_count == 2
    sleep.assert_called_with(0.25)


def test_await_finality_failed_status():
    w3 = MagicMock()
    w3.eth.get_transaction_receipt.return_value = {"status": 0, "blockNumber": 9}

    result = TransactionHandle(w3, TX_HASH, poll_interval=0).await_finality()

    assert isinstance(result, Err)
    assert result.kind is RemoteErrorKind.TRANSACTION
    assert TX_HASH in result.message


def test_await_finality_network_failure():
    w3 = MagicMock()
    w3.eth.get_transaction_receipt.side_effect = requests.exceptions.Timeout("read timed out")

    result = TransactionHandle(w3, TX_HASH, poll_interval=0).await_finality()

    assert result == Err(RemoteErrorKind.NETWORK, "read timed out")
