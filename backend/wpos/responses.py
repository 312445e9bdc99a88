# Overview: JSON response envelope shared by every route: {status, message, data, error?}.
#
# status is "success" or "error"; on failure error carries the kind
# (not-found, conflict, ...) and details the structured context.

from __future__ import annotations

from flask import jsonify, request

from .errors import ValidationError


def success(data=None, message: str = "success", status: int = 200):
    return jsonify({"status": "success", "message": message, "data": data}), status


def created(data=None, message: str = "created"):
    return success(data, message, 201)


def error(message: str, *, status: int, kind: str, details: dict | None = None):
    body = {
        "status": "error",
        "message": message,
        "data": None,
        "error": kind,
        "details": details or {},
    }
    return jsonify(body), status


def json_body() -> dict:
    """Request JSON as a dict; a missing body is an empty dict."""
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def page_args() -> dict:
    return {"limit": request.args.get("limit"), "offset": request.args.get("offset")}


def dump(rows) -> list[dict]:
    return [row.to_dict() for row in rows]
