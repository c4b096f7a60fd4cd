"""Outcome reporting for sync runs and their independent sub-tasks."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

SubTaskStatus = Literal["success", "failure"]


@dataclass
class SubTaskResult:
    """Outcome of one independent sub-task: a table load or a realtime stream."""

    name: str
    status: SubTaskStatus
    count: int = 0
    error: str | None = None
    detail: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def success(cls, name: str, count: int = 0, **detail: Any) -> SubTaskResult:
        return cls(name=name, status="success", count=count, detail=detail)

    @classmethod
    def failure(cls, name: str, exc: BaseException) -> SubTaskResult:
        return cls(name=name, status="failure", error=f"{type(exc).__name__}: {exc}")

    @property
    def ok(self) -> bool:
        return self.status == "success"

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status,
            "count": self.count,
            "error": self.error,
            **self.detail,
        }


class SyncReport:
    """Collects sub-task results, errors and timing for one sync run."""

    def __init__(self, kind: str, sync_id: str | None = None) -> None:
        self.sync_id = sync_id or str(uuid.uuid4())
        self.kind = kind
        self.started_at = datetime.now(timezone.utc)
        self.ended_at: datetime | None = None
        self.duration_ms: int | None = None
        self.results: dict[str, SubTaskResult] = {}
        self.errors: list[str] = []
        self.skipped_unchanged = False
        self.feed_version_id: int | None = None

    def add(self, result: SubTaskResult) -> None:
        self.results[result.name] = result

    def finish(self) -> None:
        self.ended_at = datetime.now(timezone.utc)
        self.duration_ms = int((self.ended_at - self.started_at).total_seconds() * 1000)

    @property
    def failed(self) -> list[str]:
        return [name for name, result in self.results.items() if not result.ok]

    @property
    def status(self) -> str:
        if self.errors:
            return "failed"
        if self.failed:
            return "partial"
        return "success"

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "sync_id": self.sync_id,
            "kind": self.kind,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "duration_ms": self.duration_ms,
            "feed_version_id": self.feed_version_id,
            "skipped_unchanged": self.skipped_unchanged,
            "results": {name: result.to_dict() for name, result in self.results.items()},
            "errors": self.errors[:100],  # cap for response size
        }
