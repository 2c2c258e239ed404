"""
Minutes workflow coordinator.

Five transitions keep the ``minutes`` and ``meeting_series`` collections
consistent without a multi-document transaction:

- add: insert minutes, then push its id onto the series list.
  Compensation deletes the inserted minutes.
- remove: conditional delete (not finalized), then pull the id.
- finalize: write the merged series topics, then flag the minutes.
  Compensation restores the previous series topics.
- unfinalize: write the reverted series topics, then flag the minutes.
  Compensation restores the previous series topics.
- remove series: delete every minutes of the series, then the series.

Preconditions (authorization, state machine) raise immediately. Write
failures surface through the returned future. All writes are chained as
continuations, so compensation runs the same way under the immediate and
the deferred executor.

Concurrency caveat: no lock spans two writes. Two concurrent finalize calls on
the same minutes may both pass validation; only the conditional delete of
``remove_minutes`` is race-safe.
"""

import logging
from concurrent.futures import Future
from datetime import datetime, timezone
from typing import Callable, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from minutesflow.core.exceptions import (
    InvalidArgumentError,
    NotAllowedError,
    WorkflowRuntimeError,
)
from minutesflow.models.user import User
from minutesflow.services.audit import AuditAction, TargetType, log_action_safely
from minutesflow.services.collection import (
    DocumentCollection,
    resolved,
    then,
    two_phase,
)
from minutesflow.services.entities import EntityStore, as_date
from minutesflow.services.notification import FinalizeNotifier
from minutesflow.services.user_roles import authorize, remove_roles_for_series

logger = logging.getLogger(__name__)


def _require_id(value, label: str) -> UUID:
    """Parse a required id, raising InvalidArgumentError when missing or malformed."""
    if value is None or value == "":
        raise InvalidArgumentError(f"{label}は必須です")
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        raise InvalidArgumentError(f"無効な{label}形式です")


def _expect_single(action: str) -> Callable[[int], int]:
    def _check(affected: int) -> int:
        if affected != 1:
            raise WorkflowRuntimeError(
                f"Unknown error occurred when {action} (affected {affected} documents)"
            )
        return affected

    return _check


class WorkflowCoordinator:
    """
    Entry point of the five workflow operations.

    Args:
        minutes: Collection adapter of the minutes documents
        meeting_series: Collection adapter of the meeting series documents
        session_factory: Session factory for role lookups and audit logs
        notifier: Trigger for the finalize mails
    """

    def __init__(
        self,
        minutes: DocumentCollection,
        meeting_series: DocumentCollection,
        session_factory: Callable[[], Session],
        notifier: Optional[FinalizeNotifier] = None,
    ):
        self.minutes = minutes
        self.meeting_series = meeting_series
        self.store = EntityStore(minutes, meeting_series)
        self.session_factory = session_factory
        self.notifier = notifier or FinalizeNotifier()

    def shutdown(self) -> None:
        """Stop the executors of both collections."""
        self.minutes.shutdown()
        self.meeting_series.shutdown()

    def _authorize(self, user: Optional[User], meeting_series_id) -> None:
        authorize(self.session_factory, user, meeting_series_id)

    def _audit(self, action: str, user_id, target_type: str, target_id, details: dict = None):
        log_action_safely(
            self.session_factory,
            action=action,
            user_id=user_id,
            target_type=target_type,
            target_id=str(target_id),
            details=details,
        )

    # ===========================================
    # Add
    # ===========================================

    def add_minutes(
        self,
        user: Optional[User],
        doc: dict,
        completion_handler: Optional[Callable[[UUID], None]] = None,
    ) -> Future:
        """
        Create a Draft minutes and append it to its meeting series.

        Resolves to the new minutes id; ``completion_handler`` receives the
        same id once both writes have committed.
        """
        series_id = _require_id(doc.get("meeting_series_id"), "会議シリーズID")
        self._authorize(user, series_id)
        user_id = user.id

        series = self.store.load_series(series_id)
        if not series.add_new_minutes_allowed():
            raise NotAllowedError("直前の議事録が確定されていないため、新しい議事録を作成できません")
        if doc.get("date") is None:
            raise InvalidArgumentError("会議日は必須です")
        try:
            minutes_date = as_date(doc["date"])
        except ValueError:
            raise InvalidArgumentError("無効な会議日形式です")
        if not series.is_minutes_date_allowed(None, minutes_date):
            raise NotAllowedError("最後に確定された議事録以前の日付で議事録を作成することはできません")

        values = dict(doc)
        values.update(
            meeting_series_id=series_id,
            date=minutes_date,
            is_finalized=False,
            is_unfinalized=False,
            finalized_at=None,
            finalized_by=None,
        )

        def _insert_minutes():
            return self.minutes.insert(values)

        def _add_reference(new_minutes_id):
            return then(
                self.meeting_series.update(series_id, {"$push": {"minutes": str(new_minutes_id)}}),
                _expect_single("adding minutes reference to parent series"),
            )

        def _remove_orphan(new_minutes_id):
            logger.warning(f"Removing orphaned minutes {new_minutes_id} of series {series_id}")
            return self.minutes.remove(new_minutes_id)

        def _committed(results):
            new_minutes_id = results[0]
            logger.info(f"Minutes added: {new_minutes_id} to series {series_id} by user {user_id}")
            self._audit(
                AuditAction.ADD_MINUTES, user_id, TargetType.MINUTES, new_minutes_id,
                {"meeting_series_id": str(series_id), "date": str(values["date"])},
            )
            if completion_handler is not None:
                completion_handler(new_minutes_id)
            return new_minutes_id

        return then(two_phase(_insert_minutes, _add_reference, _remove_orphan), _committed)

    # ===========================================
    # Remove
    # ===========================================

    def remove_minutes(self, user: Optional[User], minutes_id) -> Future:
        """
        Delete a non-finalized minutes and pull it from its series.

        Resolves to the number of deleted minutes: 0 when the minutes is
        finalized or does not exist (not an error).
        """
        minutes_uuid = _require_id(minutes_id, "議事録ID")
        minutes = self.store.find_minutes(minutes_uuid)
        if minutes is None:
            logger.info(f"Remove minutes {minutes_uuid}: not found, nothing to do")
            return resolved(0)

        series_id = minutes.parent_meeting_series_id()
        self._authorize(user, series_id)
        user_id = user.id

        def _pull_reference(affected: int):
            if affected == 0:
                logger.info(f"Remove minutes {minutes_uuid}: finalized, nothing removed")
                return 0
            return then(
                self.meeting_series.update(series_id, {"$pull": {"minutes": str(minutes_uuid)}}),
                lambda _: affected,
            )

        def _committed(affected: int):
            if affected:
                logger.info(f"Minutes removed: {minutes_uuid} by user {user_id}")
                self._audit(
                    AuditAction.REMOVE_MINUTES, user_id, TargetType.MINUTES, minutes_uuid,
                    {"meeting_series_id": series_id},
                )
            return affected

        # The is_finalized condition keeps finalized minutes even under a race
        removed = self.minutes.remove({"id": minutes_uuid, "is_finalized": False})
        return then(then(removed, _pull_reference), _committed)

    # ===========================================
    # Finalize / Unfinalize
    # ===========================================

    def _series_then_minutes(self, series, previous_topics: dict, minutes_patch: dict, minutes_id, action: str) -> Future:
        """Write the series topics, then the minutes; restore the topics if the minutes write fails."""

        def _update_series():
            return then(
                self.meeting_series.update(
                    series.id,
                    {"$set": {"topics": series.topics, "open_topics": series.open_topics}},
                ),
                _expect_single("updating topics of parent series"),
            )

        def _update_minutes(_):
            return then(
                self.minutes.update(minutes_id, {"$set": minutes_patch}),
                _expect_single("updating minutes"),
            )

        def _restore_series(_):
            logger.error(
                f"{action} of minutes {minutes_id} failed after series {series.id} was "
                f"updated, restoring series topics"
            )
            return self.meeting_series.update(series.id, {"$set": previous_topics})

        return then(
            two_phase(_update_series, _update_minutes, _restore_series),
            lambda results: results[1],
        )

    def finalize_minutes(
        self,
        user: Optional[User],
        minutes_id,
        send_action_items: bool = True,
        send_info_items: bool = True,
    ) -> Future:
        """
        Finalize the last minutes of its series.

        Merges the minutes' topics into the series, then marks the minutes
        finalized. When the minutes write fails or does not affect exactly
        one document, the series topics are restored and the future fails.
        On success the mail notification is triggered; its failures never
        reach the caller.
        """
        minutes_uuid = _require_id(minutes_id, "議事録ID")
        minutes = self.store.load_minutes(minutes_uuid)
        self._authorize(user, minutes.parent_meeting_series_id())
        user_id, username, user_emails = user.id, user.username, list(user.emails or [])

        series = minutes.parent_meeting_series()
        last = series.last_minutes()
        if last is None or last.id != minutes.id:
            raise NotAllowedError("会議シリーズの最新の議事録のみ確定できます")
        if minutes.is_finalized:
            raise NotAllowedError("この議事録は既に確定されています")

        previous_topics = series.topics_snapshot()
        series.server_finalize_last_minutes()

        patch = {
            "finalized_at": datetime.now(timezone.utc),
            "finalized_by": username,
            "is_finalized": True,
            "is_unfinalized": False,
        }

        def _committed(_):
            logger.info(f"Minutes finalized: {minutes_uuid} by {username}")
            self._audit(
                AuditAction.FINALIZE_MINUTES, user_id, TargetType.MINUTES, minutes_uuid,
                {"send_action_items": send_action_items, "send_info_items": send_info_items},
            )
            try:
                self.notifier.notify(str(minutes_uuid), user_emails, send_action_items, send_info_items)
            except Exception:
                logger.exception(f"Notification for minutes {minutes_uuid} failed")
            return None

        written = self._series_then_minutes(series, previous_topics, patch, minutes_uuid, "Finalize")
        return then(written, _committed)

    def unfinalize_minutes(self, user: Optional[User], minutes_id) -> Future:
        """
        Reopen the most recently finalized minutes of its series.

        Eligibility only considers finalized minutes: a newer Draft does not
        prevent reopening the last finalized one.
        """
        minutes_uuid = _require_id(minutes_id, "議事録ID")
        minutes = self.store.load_minutes(minutes_uuid)
        self._authorize(user, minutes.parent_meeting_series_id())
        user_id = user.id

        series = minutes.parent_meeting_series()
        if not series.is_unfinalize_minutes_allowed(minutes.id):
            raise NotAllowedError("この議事録の確定を取り消すことはできません")

        previous_topics = series.topics_snapshot()
        series.server_unfinalize_last_minutes()

        patch = {"is_finalized": False, "is_unfinalized": True}

        def _committed(_):
            logger.info(f"Minutes unfinalized: {minutes_uuid} by user {user_id}")
            self._audit(AuditAction.UNFINALIZE_MINUTES, user_id, TargetType.MINUTES, minutes_uuid)
            return None

        written = self._series_then_minutes(series, previous_topics, patch, minutes_uuid, "Unfinalize")
        return then(written, _committed)

    # ===========================================
    # Remove series
    # ===========================================

    def remove_meeting_series(self, user: Optional[User], meeting_series_id) -> Future:
        """
        Delete a meeting series with all of its minutes, finalized or not.

        An empty id is a silent no-op. Resolves to the number of deleted
        minutes.
        """
        if meeting_series_id is None or meeting_series_id == "":
            return resolved(0)

        series_id = _require_id(meeting_series_id, "会議シリーズID")
        self._authorize(user, series_id)
        user_id = user.id
        logger.info(f"Removing meeting series {series_id}")

        def _remove_series(removed_minutes: int):
            return then(self.meeting_series.remove(series_id), lambda _: removed_minutes)

        def _committed(removed_minutes: int):
            remove_roles_for_series(self.session_factory, series_id)
            logger.info(f"Meeting series removed: {series_id} ({removed_minutes} minutes)")
            self._audit(
                AuditAction.REMOVE_MEETING_SERIES, user_id, TargetType.MEETING_SERIES, series_id,
                {"removed_minutes": removed_minutes},
            )
            return removed_minutes

        # Minutes first so that no minutes outlives its series
        removed = self.minutes.remove({"meeting_series_id": series_id})
        return then(then(removed, _remove_series), _committed)
