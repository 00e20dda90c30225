import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from web3 import Web3

from errors import ConfigurationError


@dataclass(frozen=True)
class ContractMethod:
    name: str
    inputs: tuple[tuple[str, str], ...] = ()
    outputs: tuple[tuple[str, str], ...] = ()
    mutating: bool = False

    def to_abi(self) -> dict[str, Any]:
        return {
            "type": "function",
            "name": self.name,
            "inputs": [{"name": n, "type": t, "internalType": t} for n, t in self.inputs],
            "outputs": [{"name": n, "type": t, "internalType": t} for n, t in self.outputs],
            "stateMutability": "nonpayable" if self.mutating else "view",
        }


ELEICAO_METHODS: tuple[ContractMethod, ...] = (
    ContractMethod("currentElectionState", outputs=(("", "uint8"),)),
    ContractMethod("votingStartTime", outputs=(("", "uint256"),)),
    ContractMethod("votingEndTime", outputs=(("", "uint256"),)),
    ContractMethod(
        "winner",
        outputs=(("id", "uint256"), ("name", "string"), ("voteCount", "uint256")),
    ),
    ContractMethod("getVotesCount", inputs=(("_candidateId", "uint256"),), outputs=(("", "uint256"),)),
    ContractMethod("openRegistering", mutating=True),
    ContractMethod("closeRegistering", mutating=True),
    ContractMethod("openVoting", mutating=True),
    ContractMethod("closeVoting", mutating=True),
    ContractMethod("registerVoter", inputs=(("_voter", "address"),), mutating=True),
    ContractMethod("addCandidate", inputs=(("_name", "string"),), mutating=True),
    ContractMethod(
        "setVotingPeriod",
        inputs=(("_startTime", "uint256"), ("_endTime", "uint256")),
        mutating=True,
    ),
    ContractMethod(
        "vote",
        inputs=(("_voter", "address"), ("_candidateId", "uint256")),
        mutating=True,
    ),
)


def catalogue_abi(methods: tuple[ContractMethod, ...] = ELEICAO_METHODS) -> list[dict[str, Any]]:
    return [m.to_abi() for m in methods]


@dataclass(frozen=True)
class ContractBinding:
    """Where the Eleicao contract lives and which of its functions we call."""

    address: str
    abi: tuple[Mapping[str, Any], ...]
    methods: Mapping[str, ContractMethod] = field(
        default_factory=lambda: {m.name: m for m in ELEICAO_METHODS}
    )

    def method(self, name: str, mutating: bool) -> ContractMethod:
        try:
            entry = self.methods[name]
        except KeyError:
            raise KeyError(f"{name} is not part of the contract binding") from None
        if entry.mutating != mutating:
            kind = "mutating" if entry.mutating else "read-only"
            raise ValueError(f"{name} is {kind}")
        return entry


def is_valid_address(value) -> bool:
    """Hex address that is all-lowercase, all-uppercase or correctly EIP-55 checksummed."""
    if not isinstance(value, str) or not Web3.is_address(value):
        return False
    body = value[2:] if value[:2] in ("0x", "0X") else value
    return body == body.lower() or body == body.upper() or Web3.is_checksum_address(value)


def _read_json(path: Path) -> Any:
    try:
        with path.open("r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigurationError(f"Cannot read {path}: {exc}") from exc


def resolve_address(
    contract_address: str | None,
    deployment_file: str,
    deployment_key: str,
) -> str:
    """Explicit address first, then the Ignition deployed_addresses.json."""
    address = contract_address
    if not address:
        path = Path(deployment_file)
        if not path.exists():
            raise ConfigurationError(
                f"ELEICAO_CONTRACT_ADDRESS not set and deployment file {path} not found"
            )
        deployed = _read_json(path)
        address = deployed.get(deployment_key) if isinstance(deployed, dict) else None
        if not address:
            raise ConfigurationError(f"{deployment_key} not found in {path}")

    if not is_valid_address(address):
        raise ConfigurationError(f"Invalid contract address: {address}")
    return Web3.to_checksum_address(address)


def load_abi(artifact_file: str) -> list[dict[str, Any]]:
    """ABI from the Hardhat artifact when present, else the built-in catalogue."""
    path = Path(artifact_file)
    if not path.exists():
        return catalogue_abi()

    artifact = _read_json(path)
    abi = artifact.get("abi") if isinstance(artifact, dict) else None
    if not isinstance(abi, list):
        raise ConfigurationError(f"No ABI in artifact {path}")

    names = {
        entry.get("name") for entry in abi if isinstance(entry, dict) and entry.get("type") == "function"
    }
    missing = [m.name for m in ELEICAO_METHODS if m.name not in names]
    if missing:
        raise ConfigurationError(f"Artifact {path} lacks functions: {', '.join(missing)}")
    return abi


def load_binding(
    contract_address: str | None,
    deployment_file: str,
    deployment_key: str,
    artifact_file: str,
) -> ContractBinding:
    return ContractBinding(
        address=resolve_address(contract_address, deployment_file, deployment_key),
        abi=tuple(load_abi(artifact_file)),
    )
