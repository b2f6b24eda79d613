from __future__ import annotations

from typing import Any, Iterable


class WorkspaceScopeRequiredError(ValueError):
    """Raised when a repository is instantiated without workspace scope."""


class BaseRepository:
    def __init__(self, *, workspace_id: str | None = None) -> None:
        scope = str(workspace_id or "").strip()
        if not scope:
            raise WorkspaceScopeRequiredError("workspace_id is required for repository access")
        self.workspace_id = scope

    def scoped_params(self, params: Iterable[Any] | None = None) -> tuple[Any, ...]:
        values = tuple(params or ())
        return (self.workspace_id, *values)

    @staticmethod
    def rows_to_dicts(rows: Iterable[Any]) -> list[dict]:
        return [dict(row) for row in rows]
