from __future__ import annotations

from pydantic import BaseModel

from feedlog.errors import ErrorCode


class RecoverableLoadError(BaseModel):
    """Why a log replay stopped short. The store still uses what was parsed."""

    code: ErrorCode
    message: str


class LoadResult(BaseModel):
    """Outcome of replaying a metadata log: a best-effort mapping."""

    entries: dict[str, str] = {}
    skipped: int = 0  # Malformed rows ignored during replay
    compacted: bool = False
    error: RecoverableLoadError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
