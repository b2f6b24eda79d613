from __future__ import annotations

import math
from datetime import date
from typing import Any, Dict

from flask import current_app, g, jsonify, request

from erp_obras.errors import ConfirmationRequiredError, ValidationError
from erp_obras.procurement.critical_actions import get_critical_action, resolve_confirmation
from erp_obras.ui_strings import confirm_message, get_ui_text, success_message
from erp_obras.workspace import scoped_workspace_id


def _respond(result, message_key: str | None = None):
    payload = dict(result.payload)
    if message_key:
        payload["message"] = success_message(message_key)
    return jsonify(payload), result.status_code


def _workspace() -> str:
    return scoped_workspace_id()


def _today() -> date:
    return date.today()


def _json_payload() -> Dict[str, Any]:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError(code="payload_invalid", message_key="payload_invalid")
    return payload


def _int_arg(name: str, default: int) -> int:
    raw = request.args.get(name)
    if raw in (None, ""):
        return default
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise ValidationError(
            code="validation_error",
            message_key="payload_invalid",
            payload={"field": name, "value": raw},
        ) from exc


def _float_field(payload: Dict[str, Any], key: str, message_key: str = "amount_invalid") -> float | None:
    value = payload.get(key)
    if value in (None, ""):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(code=message_key, message_key=message_key, payload={"field": key}) from exc
    if not math.isfinite(number):
        raise ValidationError(code=message_key, message_key=message_key, payload={"field": key})
    return number


def _critical_confirmation_details(action_key: str) -> dict | None:
    meta = get_critical_action(action_key)
    if not meta:
        return None

    confirm_key = meta.get("confirm_message_key") or action_key
    impact_key = meta.get("impact_text_key") or f"impact.{action_key}"
    return {
        "action_key": action_key,
        "confirm_key": confirm_key,
        "confirm_message": confirm_message(confirm_key, confirm_key),
        "impact_key": impact_key,
        "impact": get_ui_text(impact_key, impact_key),
    }


def _audit_confirmation(action_key: str, entity: str, entity_id: str, mode: str) -> None:
    request_id = (getattr(g, "request_id", None) or "").strip() or "n/a"
    user = (request.headers.get("X-User-Name") or "").strip() or "anonymous"
    current_app.logger.info(
        "confirmation_event",
        extra={
            "request_id": request_id,
            "user": user,
            "workspace_id": _workspace(),
            "action": action_key,
            "entity": entity,
            "entity_id": entity_id,
            "mode": mode,
        },
    )


def _require_critical_confirmation(
    action_key: str,
    *,
    entity: str,
    entity_id: str,
    payload: dict | None = None,
) -> None:
    meta = get_critical_action(action_key)
    if not meta:
        return

    confirmed, mode = resolve_confirmation(request, payload)
    if not confirmed:
        raise ConfirmationRequiredError(
            payload={
                "action": action_key,
                "confirmation": _critical_confirmation_details(action_key),
            },
        )

    _audit_confirmation(action_key, entity, entity_id, mode)
