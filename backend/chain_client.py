import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Sequence

import requests
from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3
from web3.exceptions import ContractLogicError, TransactionNotFound, Web3Exception

from contract_binding import ContractBinding
from errors import ConfigurationError

logger = logging.getLogger(__name__)


class RemoteErrorKind(str, Enum):
    REVERT = "revert"
    NETWORK = "network"
    RPC = "rpc"
    TRANSACTION = "transaction"


@dataclass(frozen=True)
class Ok:
    value: Any


@dataclass(frozen=True)
class Err:
    kind: RemoteErrorKind
    message: str


ChainResult = Ok | Err


@dataclass(frozen=True)
class Receipt:
    tx_hash: str
    block_number: int
    status: int


# Failures that belong to the remote side. Anything else is a bug and propagates.
_REMOTE_FAILURES = (Web3Exception, ValueError, requests.RequestException, OSError)


def _error_message(exc: BaseException) -> str:
    message = getattr(exc, "message", None)
    if isinstance(message, str) and message:
        return message
    return str(exc) or exc.__class__.__name__


def _to_err(exc: BaseException) -> Err:
    if isinstance(exc, ContractLogicError):
        return Err(RemoteErrorKind.REVERT, _error_message(exc))
    if isinstance(exc, (requests.RequestException, OSError)):
        return Err(RemoteErrorKind.NETWORK, _error_message(exc))
    return Err(RemoteErrorKind.RPC, _error_message(exc))


class TransactionHandle:
    """A broadcast transaction that has not been confirmed yet."""

    def __init__(self, w3: Web3, tx_hash: str, poll_interval: float) -> None:
        self.w3 = w3
        self.tx_hash = tx_hash
        self.poll_interval = poll_interval

    def await_finality(self) -> ChainResult:
        while True:
            try:
                receipt = self.w3.eth.get_transaction_receipt(self.tx_hash)
            except TransactionNotFound:
                time.sleep(self.poll_interval)
                continue
            except _REMOTE_FAILURES as exc:
                return _to_err(exc)

            status = int(receipt.get("status", 0))
            if status != 1:
                return Err(RemoteErrorKind.TRANSACTION, f"Transaction {self.tx_hash} reverted")
            return Ok(Receipt(self.tx_hash, int(receipt.get("blockNumber", 0)), status))


class ChainClient:
    def __init__(self, w3: Web3, account: LocalAccount, poll_interval: float = 1.0) -> None:
        self.w3 = w3
        self.account = account
        self.poll_interval = poll_interval

    @property
    def address(self) -> str:
        return self.account.address

    @classmethod
    def connect(
        cls,
        rpc_url: str | None,
        signing_key: str | None,
        poll_interval: float = 1.0,
    ) -> "ChainClient":
        if not rpc_url:
            raise ConfigurationError("RPC_URL is required")
        if not signing_key:
            raise ConfigurationError("SERVER_PRIVATE_KEY is required")
        if not rpc_url.startswith(("http://", "https://")):
            raise ConfigurationError(f"RPC_URL must be an http(s) endpoint, got {rpc_url!r}")

        if not signing_key.startswith("0x"):
            signing_key = "0x" + signing_key
        try:
            account = Account.from_key(signing_key)
        except Exception as exc:  # noqa: BLE001
            raise ConfigurationError("SERVER_PRIVATE_KEY is not a valid private key") from exc

        w3 = Web3(Web3.HTTPProvider(rpc_url))
        return cls(w3, account, poll_interval=poll_interval)

    def _function(self, binding: ContractBinding, method: str, args: Sequence[Any]):
        contract = self.w3.eth.contract(address=binding.address, abi=list(binding.abi))
        return getattr(contract.functions, method)(*args)

    def call(self, binding: ContractBinding, method: str, args: Sequence[Any] = ()) -> ChainResult:
        binding.method(method, mutating=False)
        try:
            value = self._function(binding, method, args).call({"from": self.address})
        except _REMOTE_FAILURES as exc:
            return _to_err(exc)
        return Ok(value)

    def send(self, binding: ContractBinding, method: str, args: Sequence[Any] = ()) -> ChainResult:
        binding.method(method, mutating=True)
        try:
            fn = self._function(binding, method, args)
            nonce = self.w3.eth.get_transaction_count(self.address, "pending")
            tx = fn.build_transaction({"from": self.address, "nonce": nonce})
            signed = self.account.sign_transaction(tx)
            tx_hash = Web3.to_hex(self.w3.eth.send_raw_transaction(signed.raw_transaction))
        except _REMOTE_FAILURES as exc:
            return _to_err(exc)

        logger.info("Submitted %s transaction %s", method, tx_hash)
        return Ok(TransactionHandle(self.w3, tx_hash, self.poll_interval))
