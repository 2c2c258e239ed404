"""
In-memory Minutes and MeetingSeries entities.

Entities are loaded from the two document collections and expose the
predicates the workflow validates against, plus the topic-merge helpers
used on finalize / unfinalize. The merge helpers only mutate the entity;
persisting the result is up to the caller.
"""

import copy
import logging
from datetime import date, datetime
from typing import List, Optional, Tuple

from minutesflow.core.exceptions import NotFoundError
from minutesflow.services.collection import DocumentCollection

logger = logging.getLogger(__name__)


class MinutesStatus:
    """Derived finalization status of a minutes document."""

    DRAFT = "draft"
    FINALIZED = "finalized"
    REOPENED = "reopened"


def as_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def _invalidate_is_new(topic: dict) -> dict:
    topic["isNew"] = False
    for item in topic.get("infoItems", []):
        item["isNew"] = False
    return topic


def merge_topics(series_topics: List[dict], minutes_topics: List[dict]) -> Tuple[List[dict], List[dict]]:
    """
    Merge the topics of one minutes into the series' topic list.

    Topics already known to the series are replaced by the minutes' copy
    and moved to the front; unknown topics are added at the front, keeping
    the minutes' own order. Returns ``(topics, open_topics)``.
    """
    merged = copy.deepcopy(series_topics)
    for topic in reversed(minutes_topics):
        doc = _invalidate_is_new(copy.deepcopy(topic))
        merged = [t for t in merged if t.get("_id") != doc.get("_id")]
        merged.insert(0, doc)
    open_topics = [copy.deepcopy(t) for t in merged if t.get("isOpen", True)]
    return merged, open_topics


class EntityStore:
    """Loads entities from the minutes and meeting-series collections."""

    def __init__(self, minutes: DocumentCollection, meeting_series: DocumentCollection):
        self.minutes = minutes
        self.meeting_series = meeting_series

    def find_minutes(self, minutes_id) -> Optional["Minutes"]:
        doc = self.minutes.find_one(minutes_id)
        return Minutes(doc, self) if doc is not None else None

    def load_minutes(self, minutes_id) -> "Minutes":
        minutes = self.find_minutes(minutes_id)
        if minutes is None:
            raise NotFoundError("議事録が見つかりません")
        return minutes

    def find_series(self, series_id) -> Optional["MeetingSeries"]:
        doc = self.meeting_series.find_one(series_id)
        return MeetingSeries(doc, self) if doc is not None else None

    def load_series(self, series_id) -> "MeetingSeries":
        series = self.find_series(series_id)
        if series is None:
            raise NotFoundError("会議シリーズが見つかりません")
        return series

    def minutes_of_series(self, series_id) -> List["Minutes"]:
        return [Minutes(doc, self) for doc in self.minutes.find({"meeting_series_id": series_id})]


class Minutes:
    """A single meeting's record."""

    def __init__(self, doc: dict, store: Optional[EntityStore] = None):
        self._store = store
        self.id = str(doc["id"])
        self.meeting_series_id = str(doc["meeting_series_id"])
        self.date = as_date(doc["date"])
        self.topics = copy.deepcopy(doc.get("topics") or [])
        self.participants = copy.deepcopy(doc.get("participants") or [])
        self.is_finalized = bool(doc.get("is_finalized"))
        self.is_unfinalized = bool(doc.get("is_unfinalized"))
        self.finalized_at = doc.get("finalized_at")
        self.finalized_by = doc.get("finalized_by")

    @property
    def status(self) -> str:
        if self.is_finalized:
            return MinutesStatus.FINALIZED
        if self.is_unfinalized:
            return MinutesStatus.REOPENED
        return MinutesStatus.DRAFT

    def parent_meeting_series_id(self) -> str:
        return self.meeting_series_id

    def parent_meeting_series(self) -> "MeetingSeries":
        return self._store.load_series(self.meeting_series_id)

    def get_open_action_items(self) -> List[dict]:
        """Open action items of all topics, each tagged with its topic subject."""
        items = []
        for topic in self.topics:
            for item in topic.get("infoItems", []):
                if item.get("isActionItem") and item.get("isOpen", True):
                    items.append(dict(item, topicSubject=topic.get("subject", "")))
        return items

    def get_info_items(self) -> List[dict]:
        items = []
        for topic in self.topics:
            for item in topic.get("infoItems", []):
                if not item.get("isActionItem"):
                    items.append(dict(item, topicSubject=topic.get("subject", "")))
        return items

    def get_participant_user_ids(self, present_only: bool = False) -> List[str]:
        return [
            str(p["user_id"])
            for p in self.participants
            if p.get("user_id") and (p.get("present") or not present_only)
        ]

    def __repr__(self) -> str:
        return f"<Minutes {self.id} {self.date} {self.status}>"


class MeetingSeries:
    """An ordered parent owning a chronological list of minutes ids."""

    def __init__(self, doc: dict, store: Optional[EntityStore] = None):
        self._store = store
        self.id = str(doc["id"])
        self.name = doc.get("name", "")
        self.project = doc.get("project", "")
        self.minutes = [str(m) for m in (doc.get("minutes") or [])]
        self.topics = copy.deepcopy(doc.get("topics") or [])
        self.open_topics = copy.deepcopy(doc.get("open_topics") or [])
        self._loaded_minutes: Optional[List[Minutes]] = None

    def _minutes_in_order(self) -> List[Minutes]:
        """Minutes of this series in list (chronological) order."""
        if self._loaded_minutes is None:
            by_id = {m.id: m for m in self._store.minutes_of_series(self.id)}
            self._loaded_minutes = [by_id[mid] for mid in self.minutes if mid in by_id]
        return self._loaded_minutes

    def last_minutes(self) -> Optional[Minutes]:
        ordered = self._minutes_in_order()
        return ordered[-1] if ordered else None

    def last_finalized_minutes(self) -> Optional[Minutes]:
        for minutes in reversed(self._minutes_in_order()):
            if minutes.is_finalized:
                return minutes
        return None

    def add_new_minutes_allowed(self) -> bool:
        last = self.last_minutes()
        return last is None or last.is_finalized

    def is_minutes_date_allowed(self, exclude_id, candidate_date) -> bool:
        candidate = as_date(candidate_date)
        exclude = str(exclude_id) if exclude_id else None
        for minutes in self._minutes_in_order():
            if minutes.id == exclude or not minutes.is_finalized:
                continue
            if minutes.date >= candidate:
                return False
        return True

    def is_unfinalize_minutes_allowed(self, minutes_id) -> bool:
        last_finalized = self.last_finalized_minutes()
        return last_finalized is not None and last_finalized.id == str(minutes_id)

    def topics_snapshot(self) -> dict:
        return {
            "topics": copy.deepcopy(self.topics),
            "open_topics": copy.deepcopy(self.open_topics),
        }

    def server_finalize_last_minutes(self) -> None:
        last = self.last_minutes()
        if last is None:
            return
        self.topics, self.open_topics = merge_topics(self.topics, last.topics)

    def server_unfinalize_last_minutes(self) -> None:
        """
        Revert the merge of the last finalized minutes.

        The topic state is rebuilt by replaying every finalized minutes
        that precedes it, which yields exactly the state before its merge.
        """
        target = self.last_finalized_minutes()
        if target is None:
            return
        topics: List[dict] = []
        open_topics: List[dict] = []
        for minutes in self._minutes_in_order():
            if minutes.id == target.id:
                break
            if minutes.is_finalized:
                topics, open_topics = merge_topics(topics, minutes.topics)
        self.topics, self.open_topics = topics, open_topics

    def __repr__(self) -> str:
        return f"<MeetingSeries {self.id} {self.name!r} minutes={len(self.minutes)}>"
