from __future__ import annotations

from typing import Any

from quart import Blueprint, abort, current_app, jsonify, request

from gatehouse.app.services.auth_orchestrator import OutcomeKind
from gatehouse.app.services.container import get_services
from gatehouse.app.services.gate_registry import LOGIN

auth_bp = Blueprint("auth", __name__)

OUTCOME_STATUS: dict[OutcomeKind, int] = {
    OutcomeKind.SUCCESS: 200,
    OutcomeKind.GATE_REJECTED: 429,
    OutcomeKind.BLOCKED_ACCOUNT: 403,
    OutcomeKind.NEEDS_VERIFICATION: 401,
    OutcomeKind.INVALID_CREDENTIALS: 401,
    OutcomeKind.GENERIC_ERROR: 401,
}


async def _submission_fields() -> dict[str, Any]:
    if request.is_json:
        payload = await request.get_json(silent=True)
        return payload if isinstance(payload, dict) else {}
    form = await request.form
    return dict(form)


@auth_bp.get("/limits")
async def gate_statistics():
    if not current_app.config.get("DEBUG"):
        abort(404)
    stats = get_services().gates.statistics()
    return jsonify({name: value.as_dict() for name, value in stats.items()})


@auth_bp.get("/limits/<gate_name>")
async def gate_status(gate_name: str):
    gates = get_services().gates
    if gate_name not in gates:
        abort(404, description=f"unknown gate '{gate_name}'")
    identifier = (request.args.get("identifier") or "").strip() or None
    status = gates.get(gate_name).check_limit(identifier)
    return jsonify(status.as_dict())


def _attempts_warning(remaining: int | None, threshold: int) -> str | None:
    if remaining is None or not 0 < remaining <= threshold:
        return None
    noun = "attempt" if remaining == 1 else "attempts"
    return f"You have {remaining} login {noun} remaining before temporary lockout."


@auth_bp.post("/login")
async def login():
    fields = await _submission_fields()
    identifier = str(fields.get("identifier") or "").strip()
    secret = str(fields.get("secret") or "")
    if not identifier or not secret:
        return jsonify({"kind": "invalid_request", "message": "All fields are required"}), 400

    services = get_services()
    current_app.logger.debug("Login attempt for %s", identifier)
    outcome = await services.orchestrator(LOGIN).submit(identifier, secret)

    body = outcome.as_dict()
    body["warning"] = _attempts_warning(
        outcome.remaining_attempts, services.low_attempts_warning
    )
    return jsonify(body), OUTCOME_STATUS[outcome.kind]
