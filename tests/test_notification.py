"""
Tests for the finalize notification trigger.
"""
from unittest.mock import Mock, patch

from minutesflow.core.config import Settings
from minutesflow.services.notification import FinalizeNotifier, resolve_sender_address


def _settings(enabled: bool) -> Settings:
    return Settings(
        ENABLE_MAIL_DELIVERY=enabled,
        DEFAULT_EMAIL_SENDER_ADDRESS="noreply@example.com",
    )


class TestResolveSenderAddress:
    """Tests for the sender address fallback."""

    def test_first_user_email(self):
        """Test that the caller's first address is used."""
        assert resolve_sender_address(["a@example.com", "b@example.com"], _settings(True)) == "a@example.com"

    def test_default_sender(self):
        """Test the configured default when the caller has no address."""
        assert resolve_sender_address([], _settings(True)) == "noreply@example.com"
        assert resolve_sender_address(None, _settings(True)) == "noreply@example.com"


class TestFinalizeNotifier:
    """Tests for enqueueing the finalize mails."""

    def test_disabled_delivery_skips(self):
        """Test that nothing is enqueued when delivery is disabled."""
        with patch("minutesflow.celery_app.tasks.mail.send_finalize_mails_task") as mock_task:
            result = FinalizeNotifier(_settings(False)).notify("m1", ["a@example.com"], True, True)

        assert result is None
        mock_task.apply_async.assert_not_called()

    def test_enqueues_task(self):
        """Test that the task is enqueued with the resolved sender."""
        with patch("minutesflow.celery_app.tasks.mail.send_finalize_mails_task") as mock_task:
            mock_task.apply_async.return_value = Mock(id="task-123")
            result = FinalizeNotifier(_settings(True)).notify("m1", ["a@example.com"], True, False)

        assert result == "task-123"
        mock_task.apply_async.assert_called_once_with(
            args=["m1", "a@example.com", True, False], retry=False
        )

    def test_enqueues_with_default_sender(self):
        """Test that a caller without address falls back to the default sender."""
        with patch("minutesflow.celery_app.tasks.mail.send_finalize_mails_task") as mock_task:
            mock_task.apply_async.return_value = Mock(id="task-456")
            FinalizeNotifier(_settings(True)).notify("m1", [], False, True)

        mock_task.apply_async.assert_called_once_with(
            args=["m1", "noreply@example.com", False, True], retry=False
        )

    def test_enqueue_failure_is_swallowed(self):
        """Test that a broker failure is logged and not raised."""
        with patch("minutesflow.celery_app.tasks.mail.send_finalize_mails_task") as mock_task:
            mock_task.apply_async.side_effect = ConnectionError("broker down")
            result = FinalizeNotifier(_settings(True)).notify("m1", ["a@example.com"], True, True)

        assert result is None
