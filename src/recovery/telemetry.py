"""
Best-effort shipping of backup and restore events to CloudWatch Logs.
"""

import json
import logging
import socket
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)


class OperationsLogShipper:
    """Send structured operation events to a CloudWatch Logs group.

    Failures never propagate: they are logged as warnings and the calling
    operation carries on.
    """

    def __init__(
        self,
        log_group: str,
        region: Optional[str] = None,
        profile: Optional[str] = None,
        logs_client: Any = None,
        clock: Callable[[], float] = time.time,
    ):
        self.log_group = log_group
        self._clock = clock
        self._stream_ready = False

        if logs_client is None:
            session_args = {"region_name": region or "us-east-1"}
            if profile:
                session_args["profile_name"] = profile
            logs_client = boto3.Session(**session_args).client("logs")
        self.logs = logs_client

        today = datetime.now(timezone.utc)
        self.log_stream = f"{today:%Y/%m/%d}/{socket.gethostname()}"

    def _ensure_stream(self) -> None:
        if self._stream_ready:
            return
        try:
            self.logs.create_log_stream(
                logGroupName=self.log_group, logStreamName=self.log_stream
            )
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") != "ResourceAlreadyExistsException":
                raise
        self._stream_ready = True

    def emit(self, event: str, details: Optional[Dict[str, Any]] = None) -> bool:
        """Ship one event. Returns False when shipping failed."""
        message = json.dumps({"event": event, **(details or {})}, default=str)
        try:
            self._ensure_stream()
            self.logs.put_log_events(
                logGroupName=self.log_group,
                logStreamName=self.log_stream,
                logEvents=[{"timestamp": int(self._clock() * 1000), "message": message}],
            )
        except (ClientError, BotoCoreError) as e:
            logger.warning(f"Could not ship '{event}' event to {self.log_group}: {e}")
            return False
        return True
