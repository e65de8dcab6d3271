"""Tests for ChangeStreamMonitor lifecycle, atomicity, and delivery."""

import threading

import pytest

from conftest import FakeAdapter, LineRecord, make_config, read_lines

from rtbackup.domain import (
    AuthenticationError,
    Credential,
    NetworkUnreachable,
    ShareError,
    StreamSubscriptionFailure,
)
from rtbackup.monitor import ChangeStreamMonitor
from rtbackup.streams import ChangeStream


@pytest.fixture
def monitor(config, adapter, connector):
    return ChangeStreamMonitor(config, adapter, connector=connector)


class TestStart:
    def test_start_connects_and_subscribes(self, monitor, config, adapter, fake_mount):
        monitor.start()

        assert monitor.state == "running"
        assert monitor.connection.connected
        assert monitor.connection.remote_address == "\\\\HOST1\\C$"
        assert adapter.path == config.remote_source
        assert adapter.conversation_stream.subscriber_count == 1
        assert adapter.message_stream.subscriber_count == 1
        assert fake_mount.calls == [("mount", "\\\\HOST1\\C$")]

    def test_start_creates_target_dir(self, monitor, config):
        assert not config.target_dir.exists()
        monitor.start()
        assert config.target_dir.is_dir()

    def test_start_twice_rejected(self, monitor):
        monitor.start()
        with pytest.raises(RuntimeError):
            monitor.start()
        assert monitor.state == "running"

    def test_bad_credential_surfaces_unmodified(self, tmp_path, adapter, connector):
        config = make_config(tmp_path, credential=Credential(principal="corp\\alice", secret="wrong"))
        monitor = ChangeStreamMonitor(config, adapter, connector=connector)

        with pytest.raises(AuthenticationError):
            monitor.start()

        assert monitor.state == "idle"
        assert adapter.path is None
        assert adapter.conversation_stream.subscriber_count == 0
        assert adapter.message_stream.subscriber_count == 0

    def test_unreachable_host_then_stop_is_noop(self, tmp_path, adapter, connector, fake_mount):
        monitor = ChangeStreamMonitor(make_config(tmp_path, host="NOWHERE"), adapter, connector=connector)

        with pytest.raises(NetworkUnreachable):
            monitor.start()
        monitor.stop()

        assert monitor.state == "idle"
        assert monitor.connection is None
        assert [c for c in fake_mount.calls if c[0] == "unmount"] == []

    def test_message_subscription_failure_releases_everything(self, monitor, adapter, connector, fake_mount):
        adapter.message_stream.fail(RuntimeError("schema mismatch"))

        with pytest.raises(StreamSubscriptionFailure):
            monitor.start()

        assert monitor.state == "idle"
        assert connector.connections == []
        assert fake_mount.mounted == set()
        # The conversation subscription made before the failure was cancelled.
        assert adapter.conversation_stream.subscriber_count == 0

    def test_no_handler_invoked_after_failed_start(self, monitor, config, adapter):
        adapter.message_stream.fail(RuntimeError("schema mismatch"))
        with pytest.raises(StreamSubscriptionFailure):
            monitor.start()

        adapter.conversation_stream.publish(LineRecord("late"))

        assert read_lines(config.conversation_target.path) == []

    def test_conversation_subscription_failure_releases_connection(self, config, connector, fake_mount):
        adapter = FakeAdapter()

        def refuse():
            raise OSError("unable to open database file")

        adapter.conversation_stream = ChangeStream("conversations", on_first_subscribe=refuse)
        monitor = ChangeStreamMonitor(config, adapter, connector=connector)

        with pytest.raises(StreamSubscriptionFailure):
            monitor.start()

        assert fake_mount.mounted == set()
        assert adapter.message_stream.subscriber_count == 0

    def test_adapter_failure_releases_connection(self, monitor, adapter, fake_mount):
        adapter.set_connection_error = FileNotFoundError("main.db")

        with pytest.raises(FileNotFoundError):
            monitor.start()

        assert fake_mount.mounted == set()
        assert monitor.state == "idle"

    def test_restart_after_failed_start(self, monitor, adapter, fake_mount):
        adapter.set_connection_error = FileNotFoundError("main.db")
        with pytest.raises(FileNotFoundError):
            monitor.start()

        adapter.set_connection_error = None
        monitor.start()
        assert monitor.state == "running"


class TestStop:
    def test_stop_cancels_then_releases(self, monitor, adapter, connector, fake_mount):
        order = []
        adapter.conversation_stream = ChangeStream(
            "conversations", on_last_unsubscribe=lambda: order.append("conversations")
        )
        adapter.message_stream = ChangeStream(
            "messages", on_last_unsubscribe=lambda: order.append("messages")
        )
        original_unmount = fake_mount.unmount

        def unmount(handle):
            order.append("unmount")
            original_unmount(handle)

        fake_mount.unmount = unmount
        monitor.start()

        monitor.stop()

        assert order == ["messages", "conversations", "unmount"]
        assert monitor.state == "idle"
        assert connector.connections == []

    def test_stop_twice(self, monitor, fake_mount):
        monitor.start()
        monitor.stop()
        calls = list(fake_mount.calls)

        monitor.stop()

        assert fake_mount.calls == calls
        assert monitor.state == "idle"

    def test_stop_before_start(self, monitor, fake_mount):
        monitor.stop()
        assert fake_mount.calls == []

    def test_no_delivery_after_stop(self, monitor, config, adapter):
        monitor.start()
        adapter.message_stream.publish(LineRecord("before"))
        monitor.stop()

        adapter.message_stream.publish(LineRecord("after"))

        assert read_lines(config.message_target.path) == ["before"]

    def test_vanished_mount_ignored(self, monitor, fake_mount):
        monitor.start()
        fake_mount.mounted.clear()

        monitor.stop()

        assert monitor.state == "idle"

    def test_release_failure_reported_after_cancel(self, monitor, adapter, fake_mount):
        monitor.start()
        fake_mount.unmount_error = ShareError("\\\\HOST1\\C$", "system error 2401")

        with pytest.raises(ShareError):
            monitor.stop()

        assert adapter.conversation_stream.subscriber_count == 0
        assert adapter.message_stream.subscriber_count == 0
        assert monitor.state == "idle"

    def test_context_manager(self, monitor, adapter, fake_mount):
        with monitor as running:
            assert running.state == "running"
            adapter.conversation_stream.publish(LineRecord("x"))
        assert monitor.state == "idle"
        assert fake_mount.mounted == set()


class TestDelivery:
    def test_message_exported(self, monitor, config, adapter):
        monitor.start()
        adapter.message_stream.publish(LineRecord("2021-01-01,alice,hello"))

        assert read_lines(config.message_target.path) == ["2021-01-01,alice,hello"]
        assert not config.conversation_target.path.exists()

    def test_empty_conversation_not_written(self, monitor, config, adapter):
        monitor.start()
        adapter.conversation_stream.publish(LineRecord(""))

        assert not config.conversation_target.path.exists()

    def test_streams_go_to_separate_files(self, monitor, config, adapter):
        monitor.start()
        adapter.conversation_stream.publish(LineRecord("c1"))
        adapter.message_stream.publish(LineRecord("m1"))
        adapter.conversation_stream.publish(LineRecord("c2"))

        assert read_lines(config.conversation_target.path) == ["c1", "c2"]
        assert read_lines(config.message_target.path) == ["m1"]

    def test_per_stream_order_with_concurrent_producers(self, monitor, config, adapter):
        monitor.start()
        conversations = [f"c{i}" for i in range(300)]
        messages = [f"m{i}" for i in range(300)]

        def produce(stream, lines):
            for line in lines:
                stream.publish(LineRecord(line))

        threads = [
            threading.Thread(target=produce, args=(adapter.conversation_stream, conversations)),
            threading.Thread(target=produce, args=(adapter.message_stream, messages)),
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert read_lines(config.conversation_target.path) == conversations
        assert read_lines(config.message_target.path) == messages

    def test_export_callback(self, config, adapter, connector):
        exported = []
        monitor = ChangeStreamMonitor(
            config, adapter, connector=connector, on_export=lambda kind, r: exported.append((kind, r.line))
        )
        monitor.start()
        adapter.message_stream.publish(LineRecord("m1"))
        adapter.message_stream.publish(LineRecord(" "))

        assert exported == [("messages", "m1")]

    def test_export_error_reported_and_next_record_attempted(self, config, adapter, connector):
        errors = []
        monitor = ChangeStreamMonitor(
            config, adapter, connector=connector, on_error=lambda kind, r, e: errors.append((kind, r.line, e))
        )
        monitor.start()
        config.message_target.path.mkdir()  # a directory where the file should be

        adapter.message_stream.publish(LineRecord("m1"))
        config.message_target.path.rmdir()
        adapter.message_stream.publish(LineRecord("m2"))

        assert len(errors) == 1
        assert errors[0][:2] == ("messages", "m1")
        assert isinstance(errors[0][2], OSError)
        assert read_lines(config.message_target.path) == ["m2"]

    def test_export_error_warns_without_callback(self, monitor, config, adapter, capsys):
        monitor.start()
        config.message_target.path.mkdir()

        adapter.message_stream.publish(LineRecord("m1"))

        assert "Warning: failed to export messages record" in capsys.readouterr().err

    def test_serialization_error_reported(self, config, adapter, connector):
        class Broken:
            def to_csv_line(self):
                raise ValueError("bad field")

        errors = []
        monitor = ChangeStreamMonitor(
            config, adapter, connector=connector, on_error=lambda kind, r, e: errors.append(e)
        )
        monitor.start()
        adapter.conversation_stream.publish(Broken())
        adapter.conversation_stream.publish(LineRecord("ok"))

        assert isinstance(errors[0], ValueError)
        assert read_lines(config.conversation_target.path) == ["ok"]

    def test_stream_failure_reported(self, config, adapter, connector):
        failures = []
        monitor = ChangeStreamMonitor(
            config, adapter, connector=connector, on_stream_error=lambda kind, e: failures.append((kind, e))
        )
        monitor.start()
        boom = RuntimeError("database disk image is malformed")

        adapter.message_stream.fail(boom)

        assert failures == [("messages", boom)]
        assert adapter.message_stream.subscriber_count == 0
        # The other stream keeps running.
        adapter.conversation_stream.publish(LineRecord("c1"))
        assert read_lines(config.conversation_target.path) == ["c1"]

    def test_stream_failure_warns_without_callback(self, monitor, adapter, capsys):
        monitor.start()
        adapter.conversation_stream.fail(RuntimeError("gone"))
        assert "Warning: conversations stream failed: gone" in capsys.readouterr().err
