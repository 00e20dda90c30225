from __future__ import annotations

import pytest

from app import create_app
from chain_client import Err, Ok, Receipt
from contract_binding import ContractBinding, catalogue_abi

CONTRACT_ADDRESS = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
VOTER_ADDRESS = "0x" + "ab" * 20


class FakeHandle:
    def __init__(self, tx_hash: str, result=None) -> None:
        self.tx_hash = tx_hash
        self.result = result
        self.finalized = False

    def await_finality(self):
        self.finalized = True
        if self.result is not None:
            return self.result
        return Ok(Receipt(self.tx_hash, 1, 1))


class FakeChainClient:
    """Stands in for ChainClient; counts every remote call it receives."""

    def __init__(self) -> None:
        self.reads: dict = {}
        self.errors: dict[str, Err] = {}
        self.finality_errors: dict[str, Err] = {}
        self.calls: list[tuple[str, list]] = []
        self.handles: list[FakeHandle] = []

    def call(self, binding, method, args=()):
        binding.method(method, mutating=False)
        self.calls.append((method, list(args)))
        if method in self.errors:
            return self.errors[method]
        value = self.reads[method]
        if callable(value):
            value = value(*args)
        return Ok(value)

    def send(self, binding, method, args=()):
        binding.method(method, mutating=True)
        self.calls.append((method, list(args)))
        if method in self.errors:
            return self.errors[method]
        handle = FakeHandle(f"0x{len(self.handles) + 1:064x}", self.finality_errors.get(method))
        self.handles.append(handle)
        return Ok(handle)


@pytest.fixture
def binding() -> ContractBinding:
    return ContractBinding(address=CONTRACT_ADDRESS, abi=tuple(catalogue_abi()))


@pytest.fixture
def chain() -> FakeChainClient:
    return FakeChainClient()


@pytest.fixture
def app(chain, binding):
    app = create_app(chain, binding)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()
