"""
Tests for the dual-mode document collection adapter.
"""
import logging
import threading
import time
from concurrent.futures import Future
from unittest.mock import Mock

import pytest
from sqlalchemy.orm import Session

from minutesflow.models.meeting_series import MeetingSeriesModel
from minutesflow.services.collection import (
    DeferredExecutor,
    DocumentCollection,
    ImmediateExecutor,
    create_executor,
    failed,
    resolved,
    then,
    two_phase,
)

from conftest import TestingSessionLocal


@pytest.fixture(params=["immediate", "deferred"])
def collection(request, db: Session):
    """Meeting series collection, run once per execution mode."""
    coll = DocumentCollection(
        MeetingSeriesModel,
        TestingSessionLocal,
        create_executor(request.param, max_workers=2),
    )
    yield coll
    coll.shutdown()


def _slow_reads(session_factory, delay: float = 0.1):
    """Session factory whose sessions pause after every SELECT."""

    def _factory():
        session = session_factory()
        execute = session.execute

        def _execute(statement, *args, **kwargs):
            result = execute(statement, *args, **kwargs)
            if getattr(statement, "is_select", False):
                time.sleep(delay)
            return result

        session.execute = _execute
        return session

    return _factory


def _insert_series(collection: DocumentCollection, name: str = "Weekly", minutes=None):
    return collection.insert(
        {"name": name, "project": "Apollo", "minutes": minutes or [], "topics": [], "open_topics": []}
    ).result(timeout=5)


class TestExecutors:
    """Tests for executor selection."""

    def test_create_immediate(self):
        """Test that the immediate mode returns an inline executor."""
        executor = create_executor("immediate")
        assert isinstance(executor, ImmediateExecutor)
        assert executor.mode == "immediate"

    def test_create_deferred(self):
        """Test that the deferred mode returns a thread pool executor."""
        executor = create_executor("deferred", max_workers=1)
        try:
            assert isinstance(executor, DeferredExecutor)
            assert executor.mode == "deferred"
        finally:
            executor.shutdown()

    def test_create_unknown_mode(self):
        """Test that an unknown mode is rejected."""
        with pytest.raises(ValueError):
            create_executor("eventually")

    def test_immediate_future_is_done(self):
        """Test that the immediate executor completes before returning."""
        future = ImmediateExecutor().submit(lambda: 42)
        assert future.done()
        assert future.result() == 42

    def test_immediate_captures_exception(self):
        """Test that a raising call becomes a failed future."""
        def boom():
            raise RuntimeError("boom")

        future = ImmediateExecutor().submit(boom)
        assert isinstance(future.exception(), RuntimeError)


class TestThen:
    """Tests for future chaining."""

    def test_then_applies_continuation(self):
        """Test that the continuation receives the result."""
        assert then(resolved(2), lambda value: value * 3).result() == 6

    def test_then_flattens_returned_future(self):
        """Test that a continuation returning a future is flattened."""
        assert then(resolved(2), lambda value: resolved(value + 1)).result() == 3

    def test_then_skips_continuation_on_failure(self):
        """Test that a failed source propagates without calling the continuation."""
        continuation = Mock()
        chained = then(failed(KeyError("missing")), continuation)
        assert isinstance(chained.exception(), KeyError)
        continuation.assert_not_called()

    def test_then_propagates_continuation_error(self):
        """Test that an error raised by the continuation fails the chain."""
        def boom(_):
            raise ValueError("bad")

        assert isinstance(then(resolved(1), boom).exception(), ValueError)

    def test_then_waits_for_pending_future(self):
        """Test chaining onto a future that completes later."""
        pending: Future = Future()
        chained = then(pending, lambda value: value + "!")
        assert not chained.done()
        pending.set_result("done")
        assert chained.result() == "done!"


class TestTwoPhase:
    """Tests for the two-phase write with compensation."""

    def test_both_phases_succeed(self):
        """Test that both results are returned and nothing is compensated."""
        compensate = Mock()
        outcome = two_phase(lambda: "id-1", lambda first: resolved(1), compensate)
        assert outcome.result() == ("id-1", 1)
        compensate.assert_not_called()

    def test_second_failure_runs_compensation(self):
        """Test that a failing second write undoes the first one."""
        compensate = Mock(return_value=resolved(1))
        error = RuntimeError("second failed")
        outcome = two_phase(lambda: "id-1", lambda first: failed(error), compensate)

        assert outcome.exception() is error
        compensate.assert_called_once_with("id-1")

    def test_compensation_failure_keeps_original_error(self, caplog):
        """Test that a failing compensation is logged, not raised."""
        error = RuntimeError("second failed")

        def broken_compensation(_):
            raise ConnectionError("db gone")

        with caplog.at_level(logging.ERROR, logger="minutesflow.services.collection"):
            outcome = two_phase(lambda: "id-1", lambda first: failed(error), broken_compensation)

        assert outcome.exception() is error
        assert "Compensation failed" in caplog.text

    def test_first_failure_skips_second(self):
        """Test that a failing first write runs nothing else."""
        second = Mock()
        compensate = Mock()

        def first():
            raise RuntimeError("insert failed")

        outcome = two_phase(first, second, compensate)
        assert isinstance(outcome.exception(), RuntimeError)
        second.assert_not_called()
        compensate.assert_not_called()


class TestDocumentCollection:
    """Tests for collection reads and writes in both execution modes."""

    def test_insert_and_find_one(self, collection: DocumentCollection):
        """Test inserting a document and reading it back."""
        series_id = _insert_series(collection, name="Board")
        doc = collection.find_one(series_id)
        assert doc["name"] == "Board"
        assert doc["minutes"] == []

    def test_find_one_accepts_string_id(self, collection: DocumentCollection):
        """Test that string ids are coerced to UUIDs."""
        series_id = _insert_series(collection)
        assert collection.find_one(str(series_id))["id"] == series_id

    def test_find_one_missing(self, collection: DocumentCollection):
        """Test that a missing document returns None."""
        assert collection.find_one("00000000-0000-0000-0000-000000000000") is None

    def test_find_by_filter(self, collection: DocumentCollection):
        """Test selecting documents by field equality."""
        _insert_series(collection, name="A")
        _insert_series(collection, name="B")
        assert [doc["name"] for doc in collection.find({"name": "B"})] == ["B"]

    def test_update_set(self, collection: DocumentCollection):
        """Test a $set update returning the affected count."""
        series_id = _insert_series(collection)
        affected = collection.update(series_id, {"$set": {"name": "Renamed"}}).result(timeout=5)
        assert affected == 1
        assert collection.find_one(series_id)["name"] == "Renamed"

    def test_update_plain_assignment(self, collection: DocumentCollection):
        """Test an update given as plain column assignments."""
        series_id = _insert_series(collection)
        collection.update(series_id, {"project": "Gemini"}).result(timeout=5)
        assert collection.find_one(series_id)["project"] == "Gemini"

    def test_update_no_match(self, collection: DocumentCollection):
        """Test that updating a missing document affects nothing."""
        affected = collection.update(
            "00000000-0000-0000-0000-000000000000", {"$set": {"name": "x"}}
        ).result(timeout=5)
        assert affected == 0

    def test_push_and_pull(self, collection: DocumentCollection):
        """Test appending to and removing from a JSON list column."""
        series_id = _insert_series(collection, minutes=["m1"])

        assert collection.update(series_id, {"$push": {"minutes": "m2"}}).result(timeout=5) == 1
        assert collection.find_one(series_id)["minutes"] == ["m1", "m2"]

        assert collection.update(series_id, {"$pull": {"minutes": "m1"}}).result(timeout=5) == 1
        assert collection.find_one(series_id)["minutes"] == ["m2"]

    def test_concurrent_pushes_keep_both_values(self, db: Session):
        """Test that overlapping list updates on one document do not lose a write."""
        coll = DocumentCollection(
            MeetingSeriesModel,
            _slow_reads(TestingSessionLocal),
            DeferredExecutor(max_workers=2),
        )
        try:
            series_id = _insert_series(coll)
            first = coll.update(series_id, {"$push": {"minutes": "m1"}})
            second = coll.update(series_id, {"$push": {"minutes": "m2"}})

            assert first.result(timeout=5) == 1
            assert second.result(timeout=5) == 1
            assert sorted(coll.find_one(series_id)["minutes"]) == ["m1", "m2"]
        finally:
            coll.shutdown()

    def test_concurrent_push_and_pull(self, db: Session):
        """Test that a pull overlapping a push keeps the pushed value only."""
        coll = DocumentCollection(
            MeetingSeriesModel,
            _slow_reads(TestingSessionLocal),
            DeferredExecutor(max_workers=2),
        )
        try:
            series_id = _insert_series(coll, minutes=["m1"])
            pulled = coll.update(series_id, {"$pull": {"minutes": "m1"}})
            pushed = coll.update(series_id, {"$push": {"minutes": "m2"}})

            assert pulled.result(timeout=5) == 1
            assert pushed.result(timeout=5) == 1
            assert coll.find_one(series_id)["minutes"] == ["m2"]
        finally:
            coll.shutdown()

    def test_remove(self, collection: DocumentCollection):
        """Test removing a document returns the affected count."""
        series_id = _insert_series(collection)
        assert collection.remove(series_id).result(timeout=5) == 1
        assert collection.find_one(series_id) is None
        assert collection.remove(series_id).result(timeout=5) == 0

    def test_empty_selector_is_rejected(self, collection: DocumentCollection):
        """Test that an empty filter never matches the whole collection."""
        _insert_series(collection)
        with pytest.raises(ValueError):
            collection.remove({}).result(timeout=5)
        assert len(collection.find({"project": "Apollo"})) == 1

    def test_callback_receives_result(self, collection: DocumentCollection):
        """Test that the completion callback receives (None, result)."""
        series_id = _insert_series(collection)
        received = []
        called = threading.Event()

        def callback(error, result):
            received.append((error, result))
            called.set()

        collection.update(series_id, {"$set": {"name": "x"}}, callback=callback)
        assert called.wait(timeout=5)
        assert received == [(None, 1)]

    def test_callback_receives_error(self, collection: DocumentCollection):
        """Test that the completion callback receives the error."""
        received = []
        called = threading.Event()

        def callback(error, result):
            received.append((error, result))
            called.set()

        collection.remove({}, callback=callback)
        assert called.wait(timeout=5)
        error, result = received[0]
        assert isinstance(error, ValueError)
        assert result is None

    def test_raising_callback_does_not_break_future(self, collection: DocumentCollection):
        """Test that a raising callback is logged and the future still resolves."""
        def bad_callback(error, result):
            raise RuntimeError("callback bug")

        series_id = collection.insert(
            {"name": "C", "project": "", "minutes": [], "topics": [], "open_topics": []},
            callback=bad_callback,
        ).result(timeout=5)
        assert collection.find_one(series_id) is not None

    def test_execution_mode(self, collection: DocumentCollection):
        """Test that the collection reports its executor's mode."""
        assert collection.execution_mode in ("immediate", "deferred")
        assert collection.name == "meeting_series"
