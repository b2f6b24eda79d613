from __future__ import annotations

from typing import Any, Dict, Iterable

from erp_obras.ui_strings import error_message


class AppError(Exception):
    default_code = "system_error"
    default_message_key = "unexpected_error"
    default_http_status = 500
    default_critical = True

    def __init__(
        self,
        code: str | None = None,
        message_key: str | None = None,
        http_status: int | None = None,
        critical: bool | None = None,
        details: str | None = None,
        payload: Dict[str, Any] | None = None,
    ) -> None:
        self.code = (code or self.default_code).strip()
        self.message_key = (message_key or self.code or self.default_message_key).strip()
        self.http_status = int(http_status or self.default_http_status)
        self.critical = bool(self.default_critical if critical is None else critical)
        self.details = (details or "").strip() or None
        self.payload = dict(payload or {})
        super().__init__(self.details or self.code)

    def user_message(self) -> str:
        fallback = error_message("unexpected_error", "Nao foi possivel concluir a operacao.")
        return error_message(self.message_key, error_message(self.default_message_key, fallback))

    def to_response_payload(self, request_id: str) -> Dict[str, Any]:
        body: Dict[str, Any] = dict(self.payload)
        body.update(
            {
                "error": self.code,
                "message": self.user_message(),
                "request_id": request_id,
            }
        )
        return body


class UserActionError(AppError):
    """Problems the user can fix by changing the request."""

    default_code = "action_invalid"
    default_message_key = "action_invalid"
    default_http_status = 400
    default_critical = False


class ValidationError(UserActionError):
    default_code = "validation_error"
    default_message_key = "payload_invalid"


class NotFoundError(UserActionError):
    default_code = "not_found"
    default_message_key = "record_not_found"
    default_http_status = 404


class ConflictError(UserActionError):
    """The record exists but its current status does not accept the action."""

    default_code = "action_not_allowed_for_status"
    default_message_key = "action_not_allowed_for_status"
    default_http_status = 409

    @classmethod
    def for_status(
        cls,
        stage: str,
        status: str | None,
        action: str,
        allowed: Iterable[str],
        primary: str | None = None,
    ) -> "ConflictError":
        return cls(
            payload={
                "stage": stage,
                "status": status,
                "action": action,
                "allowed_actions": list(allowed),
                "primary_action": primary,
            }
        )


class ApprovalBlockedError(ConflictError):
    default_code = "order_approval_blocked"
    default_message_key = "order_approval_blocked"


class ConfirmationRequiredError(ValidationError):
    default_code = "confirmation_required"
    default_message_key = "confirmation_required"


class IntegrationError(AppError):
    default_code = "integration_error"
    default_message_key = "ai_temporarily_unavailable"
    default_http_status = 502
    default_critical = False


class SystemError(AppError):
    default_code = "system_error"
    default_message_key = "unexpected_error"
    default_http_status = 500
    default_critical = True
