"""Tests for the `python -m newsdesk` entrypoint."""
import json
from unittest.mock import AsyncMock, patch

from newsdesk.__main__ import main
from newsdesk.sync.metadata import SyncStatus
from newsdesk.sync.service import SyncReport


def test_sync_command_prints_report_and_exit_code():
    report = SyncReport(success=True, sync_type="full", timestamp="2025-01-15T08:00:00.000Z")
    with patch("newsdesk.db.engine.get_engine"), \
         patch("newsdesk.sync.service.run_sync", new=AsyncMock(return_value=report)) as run, \
         patch("builtins.print") as mock_print:
        code = main(["sync", "--full"])
    assert code == 0
    assert run.await_args.kwargs == {"full": True}
    assert json.loads(mock_print.call_args.args[0])["sync_type"] == "full"


def test_failed_sync_exits_non_zero():
    report = SyncReport(success=False, error="boom", timestamp="t")
    with patch("newsdesk.db.engine.get_engine"), \
         patch("newsdesk.sync.service.run_sync", new=AsyncMock(return_value=report)), \
         patch("builtins.print"):
        assert main(["sync"]) == 1


def test_status_command():
    with patch("newsdesk.db.engine.get_engine"), \
         patch("newsdesk.sync.metadata.get_sync_status",
               return_value=SyncStatus(status="never_synced")), \
         patch("builtins.print") as mock_print:
        assert main(["status"]) == 0
    assert json.loads(mock_print.call_args.args[0])["status"] == "never_synced"
