"""Turns HTTP payloads into Eleicao contract calls and contract results back into JSON.

Every public method returns ``(body, status)`` ready for ``jsonify``. Field
validation happens before anything is sent to the chain; a request that fails
validation never reaches the client.
"""

import logging
from typing import Any, Mapping

from web3 import Web3

from chain_client import Err, Ok
from contract_binding import ContractBinding, is_valid_address
from errors import ValidationError

logger = logging.getLogger(__name__)

UINT256_MAX = 2**256 - 1
UINT256_DIGITS = len(str(UINT256_MAX))

Response = tuple[dict[str, Any], int]


def _failure(message: str, status: int) -> Response:
    return {"success": False, "error": message}, status


def _as_uint(value: Any, message: str, field: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(message, field)
    if isinstance(value, int):
        number = value
    elif isinstance(value, str) and value.strip().isascii() and value.strip().isdigit():
        digits = value.strip().lstrip("0") or "0"
        if len(digits) > UINT256_DIGITS:
            raise ValidationError(message, field)
        number = int(digits)
    else:
        raise ValidationError(message, field)
    if number < 0 or number > UINT256_MAX:
        raise ValidationError(message, field)
    return number


def _as_address(value: Any, message: str, field: str) -> str:
    if not is_valid_address(value):
        raise ValidationError(message, field)
    return Web3.to_checksum_address(value)


def _payload(data: Any) -> Mapping[str, Any]:
    return data if isinstance(data, Mapping) else {}


class RequestMediator:
    def __init__(self, client, binding: ContractBinding) -> None:
        self.client = client
        self.binding = binding

    def _remote_failure(self, method: str, err: Err) -> Response:
        logger.error("Remote call %s failed (%s): %s", method, err.kind.value, err.message)
        return _failure(err.message, 500)

    def _read(self, method: str, args: list[Any] | None = None) -> Ok | Err:
        return self.client.call(self.binding, method, args or [])

    def _submit(self, method: str, args: list[Any], message: str, status: int = 200) -> Response:
        sent = self.client.send(self.binding, method, args)
        if isinstance(sent, Err):
            return self._remote_failure(method, sent)

        handle = sent.value
        final = handle.await_finality()
        if isinstance(final, Err):
            return self._remote_failure(method, final)

        return {"success": True, "txHash": handle.tx_hash, "message": message}, status

    # --- reads ---

    def election_state(self) -> Response:
        result = self._read("currentElectionState")
        if isinstance(result, Err):
            return self._remote_failure("currentElectionState", result)
        return {"estado": int(result.value)}, 200

    def voting_period(self) -> Response:
        start = self._read("votingStartTime")
        if isinstance(start, Err):
            return self._remote_failure("votingStartTime", start)
        end = self._read("votingEndTime")
        if isinstance(end, Err):
            return self._remote_failure("votingEndTime", end)
        return {
            "success": True,
            "votingStartTime": int(start.value),
            "votingEndTime": int(end.value),
        }, 200

    def winner(self) -> Response:
        result = self._read("winner")
        if isinstance(result, Err):
            return self._remote_failure("winner", result)
        candidate_id, name, vote_count = result.value[0], result.value[1], result.value[2]
        return {
            "success": True,
            "id": int(candidate_id),
            "name": name,
            "voteCount": int(vote_count),
        }, 200

    def candidate_votes(self, query: Mapping[str, Any]) -> Response:
        raw_id = query.get("id")
        try:
            if raw_id is None or raw_id == "":
                raise ValidationError("O parâmetro 'id' é obrigatório.", "id")
            candidate_id = _as_uint(raw_id, "O parâmetro 'id' deve ser um inteiro não negativo.", "id")
        except ValidationError as exc:
            logger.info("Rejected /candidato (%s): %s", exc.field, exc.message)
            return _failure(exc.message, 400)

        result = self._read("getVotesCount", [candidate_id])
        if isinstance(result, Err):
            return self._remote_failure("getVotesCount", result)
        return {"success": True, "voteCount": int(result.value)}, 200

    # --- phase transitions ---

    def open_registering(self) -> Response:
        return self._submit("openRegistering", [], "Registro aberto.")

    def close_registering(self) -> Response:
        return self._submit("closeRegistering", [], "Registro fechado.")

    def open_voting(self) -> Response:
        return self._submit("openVoting", [], "Votação aberta.")

    def close_voting(self) -> Response:
        return self._submit("closeVoting", [], "Votação fechada.")

    # --- registrations ---

    def register_voter(self, data: Any) -> Response:
        body = _payload(data)
        try:
            voter = _as_address(
                body.get("voterAddress"),
                "O 'voterAddress' é obrigatório e deve ser um endereço válido.",
                "voterAddress",
            )
        except ValidationError as exc:
            logger.info("Rejected registrar-eleitor (%s): %s", exc.field, exc.message)
            return _failure(exc.message, 400)

        return self._submit(
            "registerVoter",
            [voter],
            f"Eleitor {body['voterAddress']} registrado.",
            status=201,
        )

    def add_candidate(self, data: Any) -> Response:
        name = _payload(data).get("name")
        if not isinstance(name, str) or not name.strip():
            logger.info("Rejected adicionar-candidato (name): missing name")
            return _failure("O 'name' (nome) é obrigatório.", 400)

        return self._submit("addCandidate", [name], f"Candidato '{name}' adicionado.", status=201)

    def set_voting_period(self, data: Any) -> Response:
        body = _payload(data)
        start, end = body.get("startTime"), body.get("endTime")
        try:
            if start is None or end is None:
                raise ValidationError(
                    "'startTime' e 'endTime' (timestamps Unix) são obrigatórios.",
                    "startTime" if start is None else "endTime",
                )
            invalid = "'startTime' e 'endTime' devem ser timestamps Unix (inteiros não negativos)."
            start = _as_uint(start, invalid, "startTime")
            end = _as_uint(end, invalid, "endTime")
        except ValidationError as exc:
            logger.info("Rejected definir-periodo (%s): %s", exc.field, exc.message)
            return _failure(exc.message, 400)

        return self._submit("setVotingPeriod", [start, end], "Período de votação definido.")

    # --- voting ---

    def vote(self, data: Any) -> Response:
        body = _payload(data)
        candidate_id, voter_address = body.get("candidateId"), body.get("voterAddress")
        try:
            if candidate_id is None or not voter_address:
                raise ValidationError(
                    "'candidateId' e 'voterAddress' são obrigatórios.",
                    "candidateId" if candidate_id is None else "voterAddress",
                )
            voter = _as_address(voter_address, "'voterAddress' inválido.", "voterAddress")
            candidate_id = _as_uint(
                candidate_id, "'candidateId' deve ser um inteiro não negativo.", "candidateId"
            )
        except ValidationError as exc:
            logger.info("Rejected votar (%s): %s", exc.field, exc.message)
            return _failure(exc.message, 400)

        return self._submit(
            "vote",
            [voter, candidate_id],
            f"Voto computado para o candidato {candidate_id} pelo eleitor {voter_address}",
        )
