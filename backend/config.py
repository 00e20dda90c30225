import os
from dataclasses import dataclass
from typing import Mapping

from errors import ConfigurationError

DEFAULT_PORT = 3000
DEFAULT_HOST = "0.0.0.0"
DEFAULT_DEPLOYMENT_FILE = "ignition/deployments/chain-31337/deployed_addresses.json"
DEFAULT_DEPLOYMENT_KEY = "EleicaoModule#Eleicao"
DEFAULT_ARTIFACT_FILE = "artifacts/contracts/Eleicao.sol/Eleicao.json"
DEFAULT_POLL_INTERVAL_SECONDS = 1.0


@dataclass(frozen=True)
class Settings:
    rpc_url: str
    private_key: str
    port: int = DEFAULT_PORT
    host: str = DEFAULT_HOST
    contract_address: str | None = None
    deployment_file: str = DEFAULT_DEPLOYMENT_FILE
    deployment_key: str = DEFAULT_DEPLOYMENT_KEY
    artifact_file: str = DEFAULT_ARTIFACT_FILE
    poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS
    log_level: str = "INFO"


def _int_setting(env: Mapping[str, str], name: str, default: int) -> int:
    raw = (env.get(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc


def _float_setting(env: Mapping[str, str], name: str, default: float) -> float:
    raw = (env.get(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """Build Settings from the environment (``.env`` is loaded by the caller).

    RPC_URL and SERVER_PRIVATE_KEY are required; everything else has a default.
    """
    env = os.environ if env is None else env

    rpc_url = (env.get("RPC_URL") or "").strip()
    private_key = (env.get("SERVER_PRIVATE_KEY") or "").strip()
    if not rpc_url or not private_key:
        raise ConfigurationError("SERVER_PRIVATE_KEY ou RPC_URL não definidos no .env")

    port = _int_setting(env, "PORT", DEFAULT_PORT)
    if not 0 < port < 65536:
        raise ConfigurationError(f"PORT out of range: {port}")

    poll_interval = _float_setting(env, "TX_POLL_INTERVAL_SECONDS", DEFAULT_POLL_INTERVAL_SECONDS)
    if poll_interval <= 0:
        raise ConfigurationError("TX_POLL_INTERVAL_SECONDS must be positive")

    return Settings(
        rpc_url=rpc_url,
        private_key=private_key,
        port=port,
        host=(env.get("HOST") or DEFAULT_HOST).strip(),
        contract_address=(env.get("ELEICAO_CONTRACT_ADDRESS") or "").strip() or None,
        deployment_file=(env.get("ELEICAO_DEPLOYMENT_FILE") or DEFAULT_DEPLOYMENT_FILE).strip(),
        deployment_key=(env.get("ELEICAO_DEPLOYMENT_KEY") or DEFAULT_DEPLOYMENT_KEY).strip(),
        artifact_file=(env.get("ELEICAO_ARTIFACT_FILE") or DEFAULT_ARTIFACT_FILE).strip(),
        poll_interval=poll_interval,
        log_level=(env.get("LOG_LEVEL") or "INFO").strip().upper(),
    )
