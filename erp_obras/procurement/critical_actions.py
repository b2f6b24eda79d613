from __future__ import annotations

import math
from typing import Dict, Tuple


CRITICAL_ACTIONS: Dict[str, Dict[str, str]] = {
    "approve_order": {
        "action_key": "approve_order",
        "confirm_message_key": "approve_order",
        "impact_text_key": "impact.approve_order",
    },
    "reject_order": {
        "action_key": "reject_order",
        "confirm_message_key": "reject_order",
        "impact_text_key": "impact.reject_order",
    },
    "cancel_payable": {
        "action_key": "cancel_payable",
        "confirm_message_key": "cancel_payable",
        "impact_text_key": "impact.cancel_payable",
    },
}


_TRUE_TEXT_VALUES = {"1", "true", "yes", "on"}


def get_critical_action(action_key: str | None) -> Dict[str, str] | None:
    if not action_key:
        return None
    return CRITICAL_ACTIONS.get(str(action_key).strip())


def _is_explicit_true(value) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return math.isfinite(value) and int(value) == 1
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_TEXT_VALUES
    return False


def resolve_confirmation(request_obj, payload: dict | None = None) -> Tuple[bool, str]:
    payload_dict = payload if isinstance(payload, dict) else {}

    confirm_token = (
        payload_dict.get("confirm_token")
        or request_obj.args.get("confirm_token")
        or request_obj.headers.get("X-Confirm-Token")
    )
    if isinstance(confirm_token, str) and confirm_token.strip():
        return True, "confirm_token"

    confirm_value = payload_dict.get("confirm")
    if confirm_value is None:
        confirm_value = request_obj.args.get("confirm")
    if confirm_value is None:
        confirm_value = request_obj.headers.get("X-Confirm")

    if _is_explicit_true(confirm_value):
        return True, "confirm_flag"

    return False, "missing_confirmation"
