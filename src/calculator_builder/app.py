from __future__ import annotations

import logging
import os
from typing import Any

from flask import Flask, abort, jsonify, request
from werkzeug.exceptions import BadRequest, HTTPException

from .db import CalculatorStore
from .editor import EditorController, ReorderInvariantError
from .field_model import FieldModelError, field_kind_palette

FALSE_VALUES = {"0", "false", "no", "off"}


def _store(app: Flask) -> CalculatorStore:
    return app.extensions["calculator_store"]


def _configure_observability(app: Flask, app_name: str) -> None:
    app.config["APP_NAME"] = app_name
    level_name = os.environ.get("APP_LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    app.logger.setLevel(level)
    logging.getLogger("calculator_builder").setLevel(level)


def _is_api_request() -> bool:
    return request.path.startswith("/api/")


def _configure_error_handlers(app: Flask) -> None:
    @app.errorhandler(BadRequest)
    def handle_bad_request(error: BadRequest) -> Any:
        app.logger.warning("bad_request", extra={"path": request.path, "method": request.method, "error": str(error)})
        if _is_api_request():
            return jsonify({"error": "invalid request payload"}), 400
        return error

    @app.errorhandler(FieldModelError)
    @app.errorhandler(ReorderInvariantError)
    def handle_editor_error(error: ValueError) -> Any:
        app.logger.warning(
            "editor_request_rejected",
            extra={"path": request.path, "method": request.method, "error": str(error)},
        )
        return jsonify({"error": str(error)}), 400

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException) -> Any:
        app.logger.warning(
            "http_error",
            extra={"path": request.path, "method": request.method, "status_code": error.code, "error": error.description},
        )
        if _is_api_request():
            return jsonify({"error": error.description}), error.code
        return error

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception) -> Any:
        app.logger.exception("unexpected_error", extra={"path": request.path, "method": request.method})
        if _is_api_request():
            return jsonify({"error": "internal server error"}), 500
        raise error


def _json_body() -> dict[str, Any]:
    body = request.get_json(force=True, silent=False) or {}
    if not isinstance(body, dict):
        raise BadRequest("request body must be a JSON object")
    return body


def _int_arg(body: dict[str, Any], key: str) -> int:
    try:
        return int(body[key])
    except (KeyError, TypeError, ValueError):
        raise BadRequest(f"{key} must be an integer") from None


def _strict_invariants() -> bool:
    return os.environ.get("EDITOR_STRICT_INVARIANTS", "1").strip().lower() not in FALSE_VALUES


def create_editor_app(database_path: str | None = None) -> Flask:
    app = Flask(__name__)
    _configure_observability(app, "editor")
    _configure_error_handlers(app)
    app.config["DATABASE_PATH"] = database_path or os.environ.get("CALCULATOR_DB_PATH", "./data.db")
    app.config["EDITOR_STRICT_INVARIANTS"] = _strict_invariants()
    app.extensions["calculator_store"] = CalculatorStore(app.config["DATABASE_PATH"])
    app.extensions["editor_controllers"] = {}

    def _controller(calculator_id: str) -> EditorController:
        controllers: dict[str, EditorController] = app.extensions["editor_controllers"]
        controller = controllers.get(calculator_id)
        if controller is not None:
            return controller
        fields = _store(app).load_fields(calculator_id)
        if fields is None:
            abort(404, description="calculator not found")
        controller = EditorController(
            calculator_id,
            fields,
            save=_store(app).save_fields,
            strict=app.config["EDITOR_STRICT_INVARIANTS"],
        )
        controllers[calculator_id] = controller
        return controller

    @app.get("/healthz")
    def healthz() -> Any:
        return jsonify({"status": "ok", "app": app.config["APP_NAME"]})

    @app.get("/api/field-kinds")
    def field_kinds() -> Any:
        return jsonify({"kinds": field_kind_palette()})

    @app.get("/api/calculators")
    def list_calculators() -> Any:
        return jsonify({"calculators": _store(app).list_calculators()})

    @app.post("/api/calculators")
    def create_calculator() -> Any:
        body = request.get_json(silent=True) or {}
        calculator = _store(app).create(str(body.get("name", "")) if isinstance(body, dict) else None)
        return jsonify(calculator), 201

    @app.get("/api/calculators/<calculator_id>")
    def get_calculator(calculator_id: str) -> Any:
        calculator = _store(app).get(calculator_id)
        if calculator is None:
            abort(404, description="calculator not found")
        return jsonify(calculator)

    @app.delete("/api/calculators/<calculator_id>")
    def delete_calculator(calculator_id: str) -> Any:
        if not _store(app).delete(calculator_id):
            abort(404, description="calculator not found")
        app.extensions["editor_controllers"].pop(calculator_id, None)
        app.logger.info("calculator_deleted", extra={"calculator_id": calculator_id})
        return jsonify({"status": "deleted"})

    @app.get("/api/calculators/<calculator_id>/editor")
    def editor_state(calculator_id: str) -> Any:
        return jsonify(_controller(calculator_id).snapshot())

    @app.post("/api/calculators/<calculator_id>/editor/fields")
    def add_field(calculator_id: str) -> Any:
        body = _json_body()
        kind = str(body.get("kind", "")).strip()
        if not kind:
            raise BadRequest("kind is required")
        controller = _controller(calculator_id)
        controller.add_field(kind)
        return jsonify(controller.snapshot()), 201

    @app.patch("/api/calculators/<calculator_id>/editor/fields/<field_id>")
    def update_field(calculator_id: str, field_id: str) -> Any:
        changes = _json_body().get("changes")
        if not isinstance(changes, dict):
            raise BadRequest("changes must be an object")
        controller = _controller(calculator_id)
        controller.update_field(field_id, changes)
        return jsonify(controller.snapshot())

    @app.post("/api/calculators/<calculator_id>/editor/fields/<field_id>/options")
    def add_option(calculator_id: str, field_id: str) -> Any:
        controller = _controller(calculator_id)
        controller.add_option(field_id)
        return jsonify(controller.snapshot()), 201

    @app.patch("/api/calculators/<calculator_id>/editor/fields/<field_id>/options/<int:index>")
    def update_option(calculator_id: str, field_id: str, index: int) -> Any:
        body = _json_body()
        label = body.get("label")
        value = body.get("value")
        controller = _controller(calculator_id)
        controller.update_option(
            field_id,
            index,
            label=None if label is None else str(label),
            value=None if value is None else str(value),
        )
        return jsonify(controller.snapshot())

    @app.delete("/api/calculators/<calculator_id>/editor/fields/<field_id>/options/<int:index>")
    def remove_option(calculator_id: str, field_id: str, index: int) -> Any:
        controller = _controller(calculator_id)
        controller.remove_option(field_id, index)
        return jsonify(controller.snapshot())

    @app.post("/api/calculators/<calculator_id>/editor/select")
    def select_field(calculator_id: str) -> Any:
        field_id = _json_body().get("field_id")
        controller = _controller(calculator_id)
        controller.select(None if field_id is None else str(field_id))
        return jsonify(controller.snapshot())

    @app.post("/api/calculators/<calculator_id>/editor/reorder")
    def reorder_fields(calculator_id: str) -> Any:
        order = _json_body().get("order")
        if not isinstance(order, list):
            raise BadRequest("order must be a list of field ids")
        controller = _controller(calculator_id)
        controller.reorder_ids([str(field_id) for field_id in order])
        return jsonify(controller.snapshot())

    @app.post("/api/calculators/<calculator_id>/editor/drag/start")
    def drag_start(calculator_id: str) -> Any:
        index = _int_arg(_json_body(), "index")
        controller = _controller(calculator_id)
        controller.drag_start(index)
        return jsonify(controller.snapshot())

    @app.post("/api/calculators/<calculator_id>/editor/drag/over")
    def drag_over(calculator_id: str) -> Any:
        index = _int_arg(_json_body(), "index")
        controller = _controller(calculator_id)
        controller.drag_over(index)
        return jsonify(controller.snapshot())

    @app.post("/api/calculators/<calculator_id>/editor/drag/end")
    def drag_end(calculator_id: str) -> Any:
        controller = _controller(calculator_id)
        controller.drag_end()
        return jsonify(controller.snapshot())

    @app.post("/api/calculators/<calculator_id>/editor/move")
    def move_field(calculator_id: str) -> Any:
        body = _json_body()
        index = _int_arg(body, "index")
        direction = str(body.get("direction", ""))
        controller = _controller(calculator_id)
        try:
            controller.move(index, direction)
        except ValueError as exc:
            raise BadRequest(str(exc)) from exc
        return jsonify(controller.snapshot())

    @app.post("/api/calculators/<calculator_id>/editor/delete/request")
    def request_delete(calculator_id: str) -> Any:
        field_id = str(_json_body().get("field_id", ""))
        controller = _controller(calculator_id)
        controller.request_delete(field_id)
        return jsonify(controller.snapshot())

    @app.post("/api/calculators/<calculator_id>/editor/delete/cancel")
    def cancel_delete(calculator_id: str) -> Any:
        controller = _controller(calculator_id)
        controller.cancel_delete()
        return jsonify(controller.snapshot())

    @app.post("/api/calculators/<calculator_id>/editor/delete/confirm")
    def confirm_delete(calculator_id: str) -> Any:
        controller = _controller(calculator_id)
        controller.confirm_delete()
        return jsonify(controller.snapshot())

    return app
