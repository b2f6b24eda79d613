from flask import g, has_request_context


DEFAULT_WORKSPACE_ID = "morais-demo"


def normalize_workspace_id(value: str | None) -> str | None:
    workspace_id = str(value or "").strip()
    return workspace_id or None


def current_workspace_id() -> str | None:
    if not has_request_context():
        return None
    return normalize_workspace_id(getattr(g, "workspace_id", None))


def scoped_workspace_id(value: str | None = None) -> str:
    return normalize_workspace_id(value) or current_workspace_id() or DEFAULT_WORKSPACE_ID


def workspace_from_request(req) -> str:
    """Header wins over the query string; there is no login to derive it from."""
    return (
        normalize_workspace_id(req.headers.get("X-Workspace-Id"))
        or normalize_workspace_id(req.args.get("workspace_id"))
        or DEFAULT_WORKSPACE_ID
    )
