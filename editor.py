from __future__ import annotations

import sys
from typing import Callable

from flask import Flask, Request, Response, current_app, request, send_from_directory
from loguru import logger

from access_gate import AccessGate, remote_address
from backup import make_backup
from catalog import build_catalog, parse_form, read_document, serialize_catalog, write_document
from errors import AccessConflict, EditorError, StorageError
from logging_config import setup_logging
from settings import Settings, load_settings

Identify = Callable[[Request], "str | None"]


def _text(body: str, status: int = 200) -> Response:
    return Response(body, status=status, mimetype="text/plain")


def _gate() -> AccessGate:
    return current_app.extensions["access_gate"]


def _requester() -> str | None:
    return current_app.extensions["identify"](request)


def _enter_session() -> None:
    decision = _gate().acquire(_requester())
    if not decision.allowed:
        raise AccessConflict(decision.seconds_remaining)


def get_programs(settings: Settings) -> Response:
    try:
        data = read_document(settings.document)
    except OSError as exc:
        raise StorageError("Error: Couldn't find/read the programs.json file :(", exc)
    return Response(data, mimetype="application/json")


def save_programs(settings: Settings) -> Response:
    catalog = build_catalog(parse_form(request.form), settings.reject_duplicate_keys)

    try:
        data = serialize_catalog(catalog)
    except (TypeError, ValueError) as exc:
        raise StorageError("Error: Couldn't convert data to json", exc)

    # Try to make a backup for safety purposes, but don't enforce it
    backup = make_backup(settings.document, settings.backup_dir)
    if backup.ok:
        logger.info(f"Backed up {settings.document} to {backup.path}")
    else:
        logger.error(f"Failed to copy {settings.document} to backup: {backup.error}")

    try:
        write_document(settings.document, data)
    except OSError as exc:
        raise StorageError("Error: Couldn't write to programs.json", exc)

    logger.info(f"Wrote {len(data)} bytes")
    size = f"{len(catalog)} records saved (~{len(data) // 1000} kB)"
    if backup.ok:
        return _text(f"Success: {size}")
    return _text(f"Warning: {size}, but failed to backup.")


def create_app(
    settings: Settings,
    gate: AccessGate | None = None,
    identify: Identify = remote_address,
) -> Flask:
    app = Flask(
        __name__,
        static_folder=str(settings.public_dir.resolve()),
        static_url_path="",
    )
    app.extensions["access_gate"] = gate or AccessGate(settings.timeout)
    app.extensions["identify"] = identify
    logged_paths = {settings.endpoint, "/access"}

    @app.errorhandler(EditorError)
    def handle_editor_error(exc: EditorError):
        if isinstance(exc, AccessConflict):
            logger.info(f"Session conflict for {request.remote_addr}, {exc.seconds_remaining}s left")
        elif exc.http_status_code < 500:
            logger.warning(f"Rejected {request.method} {request.path}: {exc.message}")
        else:
            logger.error(f"{exc.cause!r}: {exc.message}")
        return _text(exc.message, exc.http_status_code)

    @app.after_request
    def log_request(response: Response) -> Response:
        if request.path in logged_paths:
            logger.info(f"{request.method} {request.path} {response.status_code} ({request.remote_addr})")
        return response

    @app.route(settings.endpoint, methods=["GET", "POST"])
    def programs():
        _enter_session()
        if request.method == "POST":
            return save_programs(settings)
        return get_programs(settings)

    @app.get("/access")
    def access():
        # Probe only: asking does not take the session.
        decision = _gate().probe(_requester())
        if not decision.allowed:
            raise AccessConflict(decision.seconds_remaining)
        return _text("You can get access!")

    @app.get("/")
    def index():
        return send_from_directory(app.static_folder, "index.html")

    return app


def prepare_storage(settings: Settings) -> None:
    # Check the document up front so requests don't discover it's missing.
    if not settings.document.is_file():
        logger.critical(f"Couldn't find json file in {settings.document}")
        raise SystemExit(1)
    logger.info(f"Program file path is {settings.document}")

    if not settings.backup_dir.exists():
        logger.info(f"Creating backup directory in {settings.backup_dir}")
        try:
            settings.backup_dir.mkdir(mode=0o755, parents=True)
        except OSError as exc:
            logger.warning(f"Couldn't create backup dir. ({exc})")
    logger.info(f"Backup directory is {settings.backup_dir}")


def main(argv: list[str] | None = None) -> None:
    setup_logging()
    settings = load_settings(argv)
    setup_logging(settings.log_level)
    prepare_storage(settings)
    logger.info(f"Session timeout is {settings.timeout:g}s")

    app = create_app(settings)
    logger.info(f"Running http server on address {settings.host}:{settings.port}")
    app.run(host=settings.host, port=settings.port, threaded=True, debug=False)


if __name__ == "__main__":
    main(sys.argv[1:])
