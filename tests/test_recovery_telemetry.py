"""
Tests for shipping operation events to CloudWatch Logs.
"""

import json
from unittest.mock import Mock

from botocore.exceptions import ClientError, EndpointConnectionError

from recovery.telemetry import OperationsLogShipper

LOG_GROUP = "/aws/disaster-recovery/restore-operations-dev"


def make_shipper(logs: Mock) -> OperationsLogShipper:
    return OperationsLogShipper(LOG_GROUP, logs_client=logs, clock=lambda: 1700000000.5)


class TestOperationsLogShipper:
    """Test OperationsLogShipper."""

    def test_emit(self) -> None:
        logs = Mock()
        shipper = make_shipper(logs)

        assert shipper.emit("restore_initiated", {"job_id": "restore-1", "files": 2}) is True

        logs.create_log_stream.assert_called_once_with(
            logGroupName=LOG_GROUP, logStreamName=shipper.log_stream
        )
        kwargs = logs.put_log_events.call_args.kwargs
        assert kwargs["logGroupName"] == LOG_GROUP
        event = kwargs["logEvents"][0]
        assert event["timestamp"] == 1700000000500
        assert json.loads(event["message"]) == {
            "event": "restore_initiated",
            "job_id": "restore-1",
            "files": 2,
        }

    def test_stream_created_once(self) -> None:
        logs = Mock()
        shipper = make_shipper(logs)

        shipper.emit("a")
        shipper.emit("b")

        logs.create_log_stream.assert_called_once()
        assert logs.put_log_events.call_count == 2

    def test_existing_stream(self) -> None:
        logs = Mock()
        logs.create_log_stream.side_effect = ClientError(
            {"Error": {"Code": "ResourceAlreadyExistsException", "Message": "exists"}},
            "CreateLogStream",
        )

        assert make_shipper(logs).emit("restore_status") is True
        logs.put_log_events.assert_called_once()

    def test_missing_log_group_does_not_raise(self) -> None:
        logs = Mock()
        logs.create_log_stream.side_effect = ClientError(
            {"Error": {"Code": "ResourceNotFoundException", "Message": "no group"}},
            "CreateLogStream",
        )

        assert make_shipper(logs).emit("restore_status") is False
        logs.put_log_events.assert_not_called()

    def test_network_error_does_not_raise(self) -> None:
        logs = Mock()
        logs.put_log_events.side_effect = EndpointConnectionError(endpoint_url="https://logs")

        assert make_shipper(logs).emit("backup_uploaded") is False
