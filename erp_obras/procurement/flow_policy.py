from __future__ import annotations

from typing import Dict, List


PROCESS_STAGES: List[Dict[str, str]] = [
    {"key": "requisicao", "label": "Requisicao"},
    {"key": "cotacao", "label": "Cotacao"},
    {"key": "aprovacao", "label": "Aprovacao"},
    {"key": "entrega", "label": "Entrega"},
]


ACTION_LABELS: Dict[str, str] = {
    "add_quote": "Registrar cotacao",
    "select_quote": "Selecionar cotacao",
    "update_quote_details": "Editar condicoes",
    "approve_order": "Aprovar pedido",
    "reject_order": "Rejeitar pedido",
    "mark_delivered": "Confirmar entrega",
    "view_order": "Abrir pedido",
    "view_history": "Ver historico",
    "view_payable": "Ver conta a pagar",
    "mark_paid": "Registrar pagamento",
    "cancel_payable": "Cancelar conta",
    "mark_received": "Registrar recebimento",
}


FLOW_POLICY: Dict[str, Dict[str, Dict[str, object]]] = {
    "requisicao": {
        "pending_quotes": {
            "allowed_actions": [
                "add_quote",
                "select_quote",
                "update_quote_details",
                "approve_order",
                "reject_order",
                "view_order",
            ],
            "primary_action": "add_quote",
        },
        "ready_for_approval": {
            "allowed_actions": [
                "add_quote",
                "select_quote",
                "update_quote_details",
                "approve_order",
                "reject_order",
                "view_order",
            ],
            "primary_action": "approve_order",
        },
        "approved": {
            "allowed_actions": ["mark_delivered", "view_order", "view_payable", "view_history"],
            "primary_action": "mark_delivered",
        },
        "rejected": {
            "allowed_actions": ["view_order", "view_history"],
            "primary_action": "view_history",
        },
        "delivered": {
            "allowed_actions": ["view_order", "view_payable", "view_history"],
            "primary_action": "view_history",
        },
    },
    "conta_pagar": {
        "pending": {
            "allowed_actions": ["mark_paid", "cancel_payable", "view_order"],
            "primary_action": "mark_paid",
        },
        "overdue": {
            "allowed_actions": ["mark_paid", "cancel_payable", "view_order"],
            "primary_action": "mark_paid",
        },
        "paid": {
            "allowed_actions": ["view_order", "view_history"],
            "primary_action": "view_history",
        },
        "cancelled": {
            "allowed_actions": ["view_history"],
            "primary_action": "view_history",
        },
    },
    "conta_receber": {
        "pending": {
            "allowed_actions": ["mark_received"],
            "primary_action": "mark_received",
        },
        "overdue": {
            "allowed_actions": ["mark_received"],
            "primary_action": "mark_received",
        },
        "paid": {
            "allowed_actions": ["view_history"],
            "primary_action": "view_history",
        },
        "cancelled": {
            "allowed_actions": ["view_history"],
            "primary_action": "view_history",
        },
    },
}


def _fallback_policy() -> Dict[str, object]:
    return {"allowed_actions": [], "primary_action": None}


def status_policy(stage: str, status: str | None) -> Dict[str, object]:
    if not status:
        return _fallback_policy()
    return FLOW_POLICY.get(stage, {}).get(str(status), _fallback_policy())


def allowed_actions(stage: str, status: str | None) -> List[str]:
    actions = status_policy(stage, status).get("allowed_actions") or []
    if not isinstance(actions, list):
        return []
    return [str(action) for action in actions]


def primary_action(stage: str, status: str | None) -> str | None:
    action = status_policy(stage, status).get("primary_action")
    if not action:
        return None
    return str(action)


def action_allowed(stage: str, status: str | None, action: str) -> bool:
    if not action:
        return False
    return action in set(allowed_actions(stage, status))


def action_label(action: str, fallback: str | None = None) -> str:
    label = ACTION_LABELS.get(action)
    if label:
        return label
    if fallback is not None:
        return fallback
    return action


def flow_meta(stage: str, status: str | None) -> Dict[str, object]:
    primary = primary_action(stage, status)
    return {
        "stage": stage,
        "status": status,
        "allowed_actions": allowed_actions(stage, status),
        "primary_action": primary,
        "primary_action_label": action_label(primary) if primary else None,
    }


def stage_for_order_status(status: str | None) -> str:
    mapping = {
        "pending_quotes": "cotacao",
        "ready_for_approval": "aprovacao",
        "approved": "entrega",
        "rejected": "aprovacao",
        "delivered": "entrega",
    }
    return mapping.get(str(status or "").strip(), "requisicao")


def build_process_steps(status: str | None) -> List[Dict[str, str]]:
    current_stage = stage_for_order_status(status)
    current_idx = next(
        (idx for idx, item in enumerate(PROCESS_STAGES) if item["key"] == current_stage),
        0,
    )
    finished = str(status or "").strip() == "delivered"
    steps: List[Dict[str, str]] = []
    for idx, stage in enumerate(PROCESS_STAGES):
        state = "future"
        if idx < current_idx or finished:
            state = "completed"
        elif idx == current_idx:
            state = "current"
        steps.append({"key": stage["key"], "label": stage["label"], "state": state})
    return steps
