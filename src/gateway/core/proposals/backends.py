"""Durable backing stores for the proposal store.

Provides:
- ProposalBackend: load/snapshot protocol
- InMemoryBackend: Keeps the last snapshot in memory (tests, ephemeral runs)
- JsonFileBackend: Atomic JSON snapshot file
"""

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol, Sequence, runtime_checkable

import structlog
from pydantic import ValidationError

from .models import Proposal

logger = structlog.get_logger()


@runtime_checkable
class ProposalBackend(Protocol):
    def load(self) -> list[Proposal]:
        """Return every persisted proposal (expired ones included)."""
        ...

    def snapshot(self, proposals: Sequence[Proposal]) -> None:
        """Replace the persisted state with ``proposals``."""
        ...


class InMemoryBackend:
    """Backend that only remembers the latest snapshot."""

    def __init__(self, proposals: Sequence[Proposal] | None = None):
        self.records = [p.to_record() for p in proposals or []]
        self.snapshot_count = 0

    def load(self) -> list[Proposal]:
        return [Proposal.model_validate(record) for record in self.records]

    def snapshot(self, proposals: Sequence[Proposal]) -> None:
        self.records = [p.to_record() for p in proposals]
        self.snapshot_count += 1


class JsonFileBackend:
    """JSON snapshot file, always replaced atomically.

    Every snapshot is written to ``<path>.tmp`` and renamed over ``<path>``, so
    a crash mid-write never leaves a partial file behind. The document shape is
    ``{"updatedAt": <ISO-8601>, "proposals": [<records>]}``.

    Args:
        path: Snapshot file location (parent directories are created)
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def tmp_path(self) -> Path:
        return self.path.with_name(self.path.name + ".tmp")

    def load(self) -> list[Proposal]:
        if not self.path.exists():
            return []
        try:
            raw = self.path.read_bytes().decode("utf-8")
            if not raw.strip():
                return []
            payload = json.loads(raw)
        except (UnicodeDecodeError, json.JSONDecodeError):
            logger.warning("proposal_snapshot_unreadable", path=str(self.path))
            return []
        records = payload.get("proposals") if isinstance(payload, dict) else None
        if not isinstance(records, list):
            return []

        proposals: list[Proposal] = []
        for record in records:
            try:
                proposals.append(Proposal.model_validate(record))
            except ValidationError:
                logger.warning("proposal_record_skipped", path=str(self.path))
        return proposals

    def snapshot(self, proposals: Sequence[Proposal]) -> None:
        document = {
            "updatedAt": datetime.now(timezone.utc).isoformat(),
            "proposals": [p.to_record() for p in proposals],
        }
        tmp_path = self.tmp_path
        with tmp_path.open("w", encoding="utf-8") as fh:
            json.dump(document, fh, indent=2)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_path, self.path)
