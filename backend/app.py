import logging
import os
import sys

from dotenv import load_dotenv
from flask import Blueprint, Flask, current_app, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

load_dotenv()

from chain_client import ChainClient
from config import load_settings
from contract_binding import ContractBinding, load_binding
from errors import ConfigurationError
from mediator import RequestMediator

logger = logging.getLogger(__name__)

eleicao = Blueprint("eleicao", __name__, url_prefix="/eleicao")


def _setup_logging(level_name: str | None = None) -> None:
    root = logging.getLogger()
    if getattr(root, "_eleicao_configured", False):
        return

    level_name = (level_name or os.getenv("LOG_LEVEL") or "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
    root.addHandler(handler)
    root.setLevel(level)

    root._eleicao_configured = True


def _mediator() -> RequestMediator:
    return current_app.extensions["eleicao_mediator"]


def _respond(result):
    body, status = result
    return jsonify(body), status


# --- reads ---


@eleicao.route("/estado", methods=["GET"])
def estado():
    return _respond(_mediator().election_state())


@eleicao.route("/periodo", methods=["GET"])
def periodo():
    return _respond(_mediator().voting_period())


@eleicao.route("/vencedor", methods=["GET"])
def vencedor():
    return _respond(_mediator().winner())


@eleicao.route("/candidato", methods=["GET"])
def candidato():
    return _respond(_mediator().candidate_votes(request.args))


# --- admin: phase transitions (the server wallet must be the contract owner) ---


@eleicao.route("/admin/abrir-registro", methods=["POST"])
def abrir_registro():
    return _respond(_mediator().open_registering())


@eleicao.route("/admin/fechar-registro", methods=["POST"])
def fechar_registro():
    return _respond(_mediator().close_registering())


@eleicao.route("/admin/abrir-votacao", methods=["POST"])
def abrir_votacao():
    return _respond(_mediator().open_voting())


@eleicao.route("/admin/fechar-votacao", methods=["POST"])
def fechar_votacao():
    return _respond(_mediator().close_voting())


# --- admin: registrations ---


@eleicao.route("/admin/registrar-eleitor", methods=["POST"])
def registrar_eleitor():
    return _respond(_mediator().register_voter(request.get_json(silent=True)))


@eleicao.route("/admin/adicionar-candidato", methods=["POST"])
def adicionar_candidato():
    return _respond(_mediator().add_candidate(request.get_json(silent=True)))


@eleicao.route("/admin/definir-periodo", methods=["POST"])
def definir_periodo():
    return _respond(_mediator().set_voting_period(request.get_json(silent=True)))


# --- voting ---


@eleicao.route("/votar", methods=["POST"])
def votar():
    return _respond(_mediator().vote(request.get_json(silent=True)))


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        return jsonify({"success": False, "error": exc.description}), exc.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({"success": False, "error": str(exc)}), 500


def create_app(client, binding: ContractBinding) -> Flask:
    app = Flask(__name__)
    CORS(app, send_wildcard=True)
    app.json.ensure_ascii = False
    app.extensions["eleicao_mediator"] = RequestMediator(client, binding)
    app.register_blueprint(eleicao)
    _register_error_handlers(app)
    return app


def main() -> None:
    try:
        settings = load_settings()
    except ConfigurationError as exc:
        _setup_logging()
        logger.critical("Configuration error: %s", exc)
        sys.exit(1)

    _setup_logging(settings.log_level)
    try:
        binding = load_binding(
            settings.contract_address,
            settings.deployment_file,
            settings.deployment_key,
            settings.artifact_file,
        )
        client = ChainClient.connect(
            settings.rpc_url,
            settings.private_key,
            poll_interval=settings.poll_interval,
        )
    except ConfigurationError as exc:
        logger.critical("Configuration error: %s", exc)
        sys.exit(1)

    logger.info("Servidor conectado ao contrato Eleicao em: %s", binding.address)
    logger.info("Carteira do servidor: %s", client.address)

    app = create_app(client, binding)
    logger.info("Servidor rodando na porta %s", settings.port)
    app.run(host=settings.host, port=settings.port, threaded=True)


if __name__ == "__main__":
    main()
