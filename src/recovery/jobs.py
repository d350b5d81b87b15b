"""
Restore job records persisted as JSON on local disk.

One file per job, written by ``initiate`` and read back by ``status`` and
``download`` using only the job id.
"""

import json
import logging
import os
import re
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from exceptions import PreconditionError

logger = logging.getLogger(__name__)

JOB_RECORD_VERSION = "1.0"

JOB_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")


class RestoreState:
    """Restore states tracked per file."""

    NOT_REQUIRED = "not_required"
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"

    AVAILABLE = (NOT_REQUIRED, COMPLETE)


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def generate_job_id(now: Optional[datetime] = None) -> str:
    """Generate a sortable, unique job identifier."""
    now = now or datetime.now(timezone.utc)
    return f"restore-{now:%Y%m%d-%H%M%S}-{uuid.uuid4().hex[:8]}"


@dataclass
class RestoreFile:
    """One tracked object within a restore job."""

    key: str
    size: int
    storage_class: str
    state: str = RestoreState.PENDING
    requested_at: Optional[str] = None
    restore_expiry: Optional[str] = None
    downloaded_at: Optional[str] = None
    local_path: Optional[str] = None

    @property
    def available(self) -> bool:
        return self.state in RestoreState.AVAILABLE


@dataclass
class RestoreJob:
    """A restore request covering every backup under one date prefix."""

    job_id: str
    bucket: str
    prefix: str
    tier: str
    days: int
    created_at: str
    files: List[RestoreFile] = field(default_factory=list)
    total_size: int = 0
    estimated_cost: float = 0.0
    last_checked: Optional[str] = None
    version: str = JOB_RECORD_VERSION

    def summary(self) -> Dict[str, Any]:
        """Aggregate completion across files."""
        counts = {
            RestoreState.NOT_REQUIRED: 0,
            RestoreState.PENDING: 0,
            RestoreState.IN_PROGRESS: 0,
            RestoreState.COMPLETE: 0,
        }
        for f in self.files:
            counts[f.state] = counts.get(f.state, 0) + 1

        available = sum(1 for f in self.files if f.available)
        total = len(self.files)
        return {
            "job_id": self.job_id,
            "total_files": total,
            "available": available,
            "complete": counts[RestoreState.COMPLETE],
            "in_progress": counts[RestoreState.IN_PROGRESS],
            "pending": counts[RestoreState.PENDING],
            "not_required": counts[RestoreState.NOT_REQUIRED],
            "downloaded": sum(1 for f in self.files if f.downloaded_at),
            "percent_available": round(100.0 * available / total, 1) if total else 100.0,
            "all_available": available == total,
        }

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RestoreJob":
        data = dict(data)
        data["files"] = [RestoreFile(**f) for f in data.get("files", [])]
        return cls(**data)


class JobStore:
    """Read and write restore job records in a directory."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def path_for(self, job_id: str) -> Path:
        if not JOB_ID_PATTERN.match(job_id):
            raise PreconditionError(f"Invalid job id: {job_id!r}")
        return self.directory / f"{job_id}.json"

    def save(self, job: RestoreJob) -> Path:
        """Write the job record, replacing any previous version atomically."""
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.path_for(job.job_id)
        tmp_path = path.with_suffix(".json.tmp")
        with open(tmp_path, "w") as f:
            json.dump(job.to_dict(), f, indent=2)
        os.replace(tmp_path, path)
        logger.debug(f"Saved restore job {job.job_id} to {path}")
        return path

    def load(self, job_id: str) -> RestoreJob:
        path = self.path_for(job_id)
        if not path.exists():
            raise PreconditionError(f"Restore job not found: {job_id} (looked in {self.directory})")
        with open(path, "r") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise PreconditionError(f"Restore job file {path} is corrupt: {e}") from e
        return RestoreJob.from_dict(data)

    def list_jobs(self) -> List[str]:
        """Job ids found in the store, oldest first."""
        if not self.directory.is_dir():
            return []
        return sorted(p.stem for p in self.directory.glob("*.json"))
