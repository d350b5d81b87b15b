"""
Restore of archived backups: list, estimate, initiate, status, download.

Backups live under ``<backup_prefix><YYYY-MM-DD>/`` in the backup bucket and
transition to an archive storage class shortly after upload, so reading
them back is a two-step process: request a temporary restored copy, then
download once S3 reports the restore complete.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple, Union

import boto3
from botocore.exceptions import ClientError

from exceptions import PreconditionError

from .jobs import (
    JobStore,
    RestoreFile,
    RestoreJob,
    RestoreState,
    generate_job_id,
    utc_now,
)
from .pricing import ARCHIVE_STORAGE_CLASSES, RestoreCostEstimator, RestoreTier
from .telemetry import OperationsLogShipper

logger = logging.getLogger(__name__)

DATE_PREFIX_PATTERN = re.compile(r"^\d{4}(-\d{2}(-\d{2})?)?$")

_ONGOING = re.compile(r'ongoing-request="(true|false)"')
_EXPIRY = re.compile(r'expiry-date="([^"]+)"')


@dataclass
class BackupObject:
    """An object found under the backup prefix."""

    key: str
    size: int
    storage_class: str
    last_modified: Optional[str] = None

    @property
    def archived(self) -> bool:
        return self.storage_class in ARCHIVE_STORAGE_CLASSES


def parse_restore_header(header: Optional[str]) -> Tuple[str, Optional[str]]:
    """
    Interpret the ``x-amz-restore`` header of an archived object.

    Returns:
        Tuple of (restore state, expiry date or None)
    """
    if not header:
        return RestoreState.PENDING, None

    ongoing = _ONGOING.search(header)
    expiry = _EXPIRY.search(header)
    if ongoing and ongoing.group(1) == "true":
        return RestoreState.IN_PROGRESS, None
    if ongoing and ongoing.group(1) == "false":
        return RestoreState.COMPLETE, expiry.group(1) if expiry else None
    return RestoreState.PENDING, None


class RestoreTracker:
    """Request, track and download restores of archived backups."""

    def __init__(
        self,
        job_store: JobStore,
        region: Optional[str] = None,
        profile: Optional[str] = None,
        backup_prefix: str = "backups/",
        telemetry: Optional[OperationsLogShipper] = None,
        s3_client: Any = None,
    ):
        """
        Initialize restore tracker.

        Args:
            job_store: Where job records are persisted
            region: AWS region
            profile: AWS profile to use
            backup_prefix: Key prefix under which dated backups live
            telemetry: Optional CloudWatch Logs shipper for operation events
            s3_client: Pre-built S3 client
        """
        self.job_store = job_store
        self.backup_prefix = backup_prefix
        self.telemetry = telemetry
        self.estimator = RestoreCostEstimator()

        if s3_client is None:
            session_args = {"region_name": region or "us-east-1"}
            if profile:
                session_args["profile_name"] = profile
            s3_client = boto3.Session(**session_args).client("s3")
        self.s3 = s3_client

    def _emit(self, event: str, details: Dict[str, Any]) -> None:
        if self.telemetry is not None:
            self.telemetry.emit(event, details)

    def date_prefix(self, date: str) -> str:
        """Full key prefix for a backup date (YYYY, YYYY-MM or YYYY-MM-DD)."""
        if not DATE_PREFIX_PATTERN.match(date):
            raise PreconditionError(
                f"Invalid backup date '{date}' (expected YYYY-MM-DD, YYYY-MM or YYYY)"
            )
        return f"{self.backup_prefix}{date}"

    def list_backups(self, bucket: str, date: str) -> List[BackupObject]:
        """List backup objects under a date prefix."""
        prefix = self.date_prefix(date)
        objects = []

        paginator = self.s3.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
            for obj in page.get("Contents", []):
                if obj["Key"].endswith("/"):
                    continue
                objects.append(
                    BackupObject(
                        key=obj["Key"],
                        size=int(obj.get("Size", 0)),
                        storage_class=obj.get("StorageClass", "STANDARD"),
                        last_modified=str(obj["LastModified"]) if obj.get("LastModified") else None,
                    )
                )

        logger.info(f"Found {len(objects)} backup object(s) under s3://{bucket}/{prefix}")
        return objects

    def estimate(
        self, bucket: str, date: str, objects: Optional[List[BackupObject]] = None
    ) -> Dict[str, Any]:
        """Size and per-tier cost of restoring the archived objects under a date."""
        if objects is None:
            objects = self.list_backups(bucket, date)

        archived = [o for o in objects if o.archived]
        archived_size = sum(o.size for o in archived)
        storage_classes = sorted({o.storage_class for o in archived})

        tiers = {}
        for tier in RestoreTier:
            tiers[tier.value] = {
                "cost": self.estimator.estimate_cost(archived_size, tier),
                "available": all(self.estimator.is_supported(sc, tier) for sc in storage_classes),
                "retrieval_time": {
                    sc: self.estimator.retrieval_time(sc, tier) for sc in storage_classes
                },
            }

        return {
            "bucket": bucket,
            "prefix": self.date_prefix(date),
            "file_count": len(objects),
            "archived_count": len(archived),
            "total_size": sum(o.size for o in objects),
            "archived_size": archived_size,
            "archived_size_gb": self.estimator.size_in_gb(archived_size),
            "storage_classes": storage_classes,
            "tiers": tiers,
        }

    def initiate(
        self,
        bucket: str,
        date: str,
        tier: RestoreTier,
        days: int = 7,
    ) -> RestoreJob:
        """
        Request restoration of every archived object under a date prefix.

        The job record is persisted even if a request fails part-way, so the
        requests already accepted stay tracked.
        """
        if days < 1:
            raise PreconditionError("Restore days must be at least 1")

        objects = self.list_backups(bucket, date)
        if not objects:
            raise PreconditionError(f"No backups found under s3://{bucket}/{self.date_prefix(date)}")

        self.estimator.check_supported((o.storage_class for o in objects if o.archived), tier)
        estimate = self.estimate(bucket, date, objects)

        job = RestoreJob(
            job_id=generate_job_id(),
            bucket=bucket,
            prefix=self.date_prefix(date),
            tier=tier.value,
            days=days,
            created_at=utc_now(),
            files=[
                RestoreFile(
                    key=o.key,
                    size=o.size,
                    storage_class=o.storage_class,
                    state=RestoreState.PENDING if o.archived else RestoreState.NOT_REQUIRED,
                )
                for o in objects
            ],
            total_size=estimate["total_size"],
            estimated_cost=estimate["tiers"][tier.value]["cost"],
        )

        try:
            for restore_file in job.files:
                if restore_file.state == RestoreState.NOT_REQUIRED:
                    continue
                self._request_restore(bucket, restore_file, tier, days)
        finally:
            self.job_store.save(job)

        self._emit(
            "restore_initiated",
            {
                "job_id": job.job_id,
                "bucket": bucket,
                "prefix": job.prefix,
                "tier": job.tier,
                "files": len(job.files),
                "total_size": job.total_size,
                "estimated_cost": job.estimated_cost,
            },
        )
        logger.info(f"Restore job {job.job_id} initiated for {len(job.files)} file(s)")
        return job

    def _request_restore(
        self, bucket: str, restore_file: RestoreFile, tier: RestoreTier, days: int
    ) -> None:
        try:
            self.s3.restore_object(
                Bucket=bucket,
                Key=restore_file.key,
                RestoreRequest={"Days": days, "GlacierJobParameters": {"Tier": tier.value}},
            )
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") != "RestoreAlreadyInProgress":
                raise
            logger.info(f"Restore already in progress for {restore_file.key}")

        restore_file.state = RestoreState.IN_PROGRESS
        restore_file.requested_at = utc_now()

    def status(self, job_id: str) -> RestoreJob:
        """Re-query the restore header of every tracked archived object."""
        job = self.job_store.load(job_id)

        for restore_file in job.files:
            if restore_file.state == RestoreState.NOT_REQUIRED:
                continue
            response = self.s3.head_object(Bucket=job.bucket, Key=restore_file.key)
            state, expiry = parse_restore_header(response.get("Restore"))
            restore_file.state = state
            restore_file.restore_expiry = expiry

        job.last_checked = utc_now()
        self.job_store.save(job)

        summary = job.summary()
        self._emit("restore_status", summary)
        return job

    def download(
        self,
        job_id: str,
        destination: Union[str, Path],
        refresh: bool = True,
    ) -> Dict[str, List[str]]:
        """
        Download every restored object of a job into ``destination``.

        Objects whose restore is not complete are skipped. Keys keep their
        path below the backup prefix.

        Returns:
            Dict with ``downloaded``, ``skipped`` and ``already_downloaded`` key lists
        """
        job = self.status(job_id) if refresh else self.job_store.load(job_id)
        destination = Path(destination)
        destination.mkdir(parents=True, exist_ok=True)
        root = destination.resolve()

        result: Dict[str, List[str]] = {"downloaded": [], "skipped": [], "already_downloaded": []}
        seen: Set[str] = set()

        try:
            for restore_file in job.files:
                if restore_file.key in seen:
                    continue
                seen.add(restore_file.key)

                if not restore_file.available:
                    logger.info(f"Skipping {restore_file.key}: restore is {restore_file.state}")
                    result["skipped"].append(restore_file.key)
                    continue

                local_path = self._local_path(root, restore_file.key)
                if (
                    restore_file.downloaded_at
                    and local_path.exists()
                    and local_path.stat().st_size == restore_file.size
                ):
                    result["already_downloaded"].append(restore_file.key)
                    continue

                local_path.parent.mkdir(parents=True, exist_ok=True)
                logger.info(f"Downloading s3://{job.bucket}/{restore_file.key} -> {local_path}")
                self.s3.download_file(job.bucket, restore_file.key, str(local_path))

                restore_file.downloaded_at = datetime.now(timezone.utc).isoformat()
                restore_file.local_path = str(local_path)
                result["downloaded"].append(restore_file.key)
        finally:
            self.job_store.save(job)

        self._emit(
            "restore_downloaded",
            {
                "job_id": job.job_id,
                "destination": str(root),
                "downloaded": len(result["downloaded"]),
                "skipped": len(result["skipped"]),
            },
        )
        return result

    def _local_path(self, root: Path, key: str) -> Path:
        relative = key[len(self.backup_prefix):] if key.startswith(self.backup_prefix) else key
        local_path = (root / relative).resolve()
        if root != local_path and root not in local_path.parents:
            raise PreconditionError(f"Refusing to write {key} outside {root}")
        return local_path
