"""
Upload local files into the dated backup prefix of the backup bucket.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import boto3

from exceptions import PreconditionError

from .restore import DATE_PREFIX_PATTERN
from .telemetry import OperationsLogShipper

logger = logging.getLogger(__name__)


@dataclass
class BackupSummary:
    """Outcome of one upload run."""

    bucket: str
    prefix: str
    uploaded: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    uploaded_bytes: int = 0


class BackupUploader:
    """Upload backups with an archive storage class."""

    def __init__(
        self,
        region: Optional[str] = None,
        profile: Optional[str] = None,
        backup_prefix: str = "backups/",
        storage_class: str = "DEEP_ARCHIVE",
        telemetry: Optional[OperationsLogShipper] = None,
        s3_client: Any = None,
    ):
        self.backup_prefix = backup_prefix
        self.storage_class = storage_class
        self.telemetry = telemetry

        if s3_client is None:
            session_args = {"region_name": region or "us-east-1"}
            if profile:
                session_args["profile_name"] = profile
            s3_client = boto3.Session(**session_args).client("s3")
        self.s3 = s3_client

    def _existing_sizes(self, bucket: str, prefix: str) -> Dict[str, int]:
        sizes = {}
        paginator = self.s3.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
            for obj in page.get("Contents", []):
                sizes[obj["Key"]] = int(obj.get("Size", 0))
        return sizes

    def upload(
        self,
        bucket: str,
        source: Union[str, Path],
        date: Optional[str] = None,
    ) -> BackupSummary:
        """
        Upload a file or directory tree under ``<prefix><date>/``.

        Files already present with the same size are skipped.
        """
        source = Path(source)
        if not source.exists():
            raise PreconditionError(f"Backup source not found: {source}")

        date = date or datetime.now(timezone.utc).strftime("%Y-%m-%d")
        if not DATE_PREFIX_PATTERN.match(date) or len(date) != 10:
            raise PreconditionError(f"Invalid backup date '{date}' (expected YYYY-MM-DD)")

        prefix = f"{self.backup_prefix}{date}/"
        if source.is_file():
            files = [(source, source.name)]
        else:
            files = [
                (path, path.relative_to(source).as_posix())
                for path in sorted(source.rglob("*"))
                if path.is_file()
            ]

        summary = BackupSummary(bucket=bucket, prefix=prefix)
        existing = self._existing_sizes(bucket, prefix)

        for path, relative in files:
            key = prefix + relative
            size = path.stat().st_size
            if existing.get(key) == size:
                logger.info(f"Skipping {key}: already uploaded")
                summary.skipped.append(key)
                continue

            logger.info(f"Uploading {path} -> s3://{bucket}/{key}")
            self.s3.upload_file(
                str(path), bucket, key, ExtraArgs={"StorageClass": self.storage_class}
            )
            summary.uploaded.append(key)
            summary.uploaded_bytes += size

        if self.telemetry is not None:
            self.telemetry.emit(
                "backup_uploaded",
                {
                    "bucket": bucket,
                    "prefix": prefix,
                    "uploaded": len(summary.uploaded),
                    "skipped": len(summary.skipped),
                    "bytes": summary.uploaded_bytes,
                },
            )
        return summary
