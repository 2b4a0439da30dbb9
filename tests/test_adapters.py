"""Tests for the Supabase source, S3 destination and Slack notifier adapters."""

import io
import json
import urllib.error
from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from storage_backup.backup_manager import RunMetrics
from storage_backup.errors import NotificationError
from storage_backup.notifier import SlackNotifier, build_backup_message
from storage_backup.s3_destination import S3Destination
from storage_backup.supabase_source import SupabaseSource
from storage_backup.transfer import TransferOutcome
from storage_backup.tree_enumerator import RemoteObject, is_folder_entry


def client_error(code):
    return ClientError({"Error": {"Code": code, "Message": code}}, "HeadObject")


class TestSupabaseSource:
    def test_list_converts_items(self):
        client = MagicMock()
        bucket = client.storage.from_.return_value
        bucket.list.return_value = [
            {"name": "folder", "id": None, "metadata": None},
            {
                "name": "a.mp3",
                "id": "uuid-1",
                "metadata": {"size": 123},
                "created_at": "2024-05-01T09:00:00Z",
                "updated_at": "2024-05-01T10:00:00Z",
            },
        ]

        entries = SupabaseSource(client, "audio").list("2024")

        client.storage.from_.assert_called_with("audio")
        bucket.list.assert_called_once_with("2024", {"limit": 10000, "offset": 0})
        assert [e.name for e in entries] == ["folder", "a.mp3"]
        assert is_folder_entry(entries[0])
        assert not is_folder_entry(entries[1])
        assert entries[1].entry_id == "uuid-1"

    def test_read_returns_bytes(self):
        client = MagicMock()
        client.storage.from_.return_value.download.return_value = b"data"

        assert SupabaseSource(client, "audio").read("a.mp3") == b"data"

    def test_read_without_data_raises(self):
        client = MagicMock()
        client.storage.from_.return_value.download.return_value = None

        with pytest.raises(ValueError):
            SupabaseSource(client, "audio").read("a.mp3")


class TestS3Destination:
    def test_exists_true(self):
        s3 = MagicMock()
        assert S3Destination(s3, "bucket").exists("k") is True
        s3.head_object.assert_called_once_with(Bucket="bucket", Key="k")

    @pytest.mark.parametrize("code", ["404", "NoSuchKey", "NotFound"])
    def test_exists_false_on_not_found(self, code):
        s3 = MagicMock()
        s3.head_object.side_effect = client_error(code)
        assert S3Destination(s3, "bucket").exists("k") is False

    def test_exists_raises_on_other_errors(self):
        s3 = MagicMock()
        s3.head_object.side_effect = client_error("403")
        with pytest.raises(ClientError):
            S3Destination(s3, "bucket").exists("k")

    def test_write_buffer(self):
        s3 = MagicMock()

        S3Destination(s3, "bucket").write_buffer("k", b"abc", "audio/mpeg", {"original-path": "a"})

        s3.put_object.assert_called_once_with(
            Bucket="bucket",
            Key="k",
            Body=b"abc",
            ContentType="audio/mpeg",
            Metadata={"original-path": "a"},
        )

    def test_write_stream_reports_progress(self, tmp_path):
        staged = tmp_path / "staged.bin"
        staged.write_bytes(b"x" * 100)
        s3 = MagicMock()

        def fake_upload(fileobj, bucket, key, ExtraArgs, Callback):
            Callback(40)
            Callback(60)

        s3.upload_fileobj.side_effect = fake_upload
        progress = []

        with open(staged, "rb") as fh:
            S3Destination(s3, "bucket").write_stream(
                "k", fh, "video/mp4", {"original-path": "v"}, progress.append
            )

        assert progress == [40, 100]
        _, kwargs = s3.upload_fileobj.call_args
        assert kwargs["ExtraArgs"] == {"ContentType": "video/mp4", "Metadata": {"original-path": "v"}}


def finished_metrics(errors=0):
    metrics = RunMetrics(start_time=datetime(2024, 5, 1, 2, 0))
    metrics.record(RemoteObject("a.mp3", 10), TransferOutcome.copied("a.mp3", "buffered", 10))
    for i in range(errors):
        metrics.record(RemoteObject(f"e{i}.mp3", 1), TransferOutcome.failed(f"e{i}.mp3", RuntimeError()))
    return metrics.finish(datetime(2024, 5, 1, 2, 1, 5))


class TestSlackNotifier:
    def test_message_success(self):
        message = build_backup_message(finished_metrics())

        assert message["text"] == "Storage Backup - Success"
        fields = [f["text"] for f in message["blocks"][2]["fields"]]
        assert "*Backed Up:*\n1" in fields
        assert "*Duration:*\n1m 5s" in fields
        assert len(message["blocks"]) == 4

    def test_message_with_errors_has_warning(self):
        message = build_backup_message(finished_metrics(errors=2))

        assert message["text"] == "Storage Backup - Completed with errors"
        assert "2 file(s) failed" in message["blocks"][-1]["text"]["text"]

    def test_message_nothing_to_do(self):
        metrics = RunMetrics().finish()
        assert "Nothing to do" in build_backup_message(metrics)["text"]

    def test_send_without_webhook_is_noop(self):
        with patch("storage_backup.notifier.urllib.request.urlopen") as urlopen:
            SlackNotifier(None).send(finished_metrics())
        urlopen.assert_not_called()

    def test_send_posts_json(self):
        response = MagicMock()
        response.getcode.return_value = 200
        with patch("storage_backup.notifier.urllib.request.urlopen") as urlopen:
            urlopen.return_value.__enter__.return_value = response
            SlackNotifier("https://hooks.example/abc").send(finished_metrics())

        request = urlopen.call_args[0][0]
        assert request.get_method() == "POST"
        assert request.full_url == "https://hooks.example/abc"
        assert json.loads(request.data)["text"] == "Storage Backup - Success"

    def test_send_http_error_raises_notification_error(self):
        error = urllib.error.HTTPError(
            "https://hooks.example/abc", 500, "Server Error", {}, io.BytesIO(b"")
        )
        with patch("storage_backup.notifier.urllib.request.urlopen", side_effect=error):
            with pytest.raises(NotificationError):
                SlackNotifier("https://hooks.example/abc").send(finished_metrics())
