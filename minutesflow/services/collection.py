"""
Dual-mode document collection adapter.

Every mutation (insert / update / remove) returns a
``concurrent.futures.Future``. Under the immediate executor the future is
already resolved when the call returns; under the deferred executor it
resolves later on a worker thread. Callers compose writes with ``then`` and
``two_phase`` so that continuations and compensation behave the same way in
both modes.

Each call runs in its own session and commits before its future resolves.
There is no transaction spanning two calls.
"""

import logging
import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Optional, Union

from sqlalchemy import Uuid, delete, select, update
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

Selector = Union[str, uuid.UUID, dict]
CompletionCallback = Callable[[Optional[BaseException], Any], None]


# ===========================================
# Executors
# ===========================================


class ImmediateExecutor:
    """Run each call inline; the returned future is already done."""

    mode = "immediate"

    def submit(self, fn: Callable, *args, **kwargs) -> Future:
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future

    def shutdown(self, wait: bool = True) -> None:
        pass


class DeferredExecutor:
    """Run each call on a worker thread; completion is signalled later."""

    mode = "deferred"

    def __init__(self, max_workers: int = 4):
        self._pool = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="collection"
        )

    def submit(self, fn: Callable, *args, **kwargs) -> Future:
        return self._pool.submit(fn, *args, **kwargs)

    def shutdown(self, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait)


def create_executor(mode: str, max_workers: int = 4):
    """Build the executor for the configured execution mode."""
    if mode == "immediate":
        return ImmediateExecutor()
    if mode == "deferred":
        return DeferredExecutor(max_workers=max_workers)
    raise ValueError(f"Unknown workflow execution mode: {mode}")


# ===========================================
# Future composition
# ===========================================


def resolved(value: Any = None) -> Future:
    """Return a future already completed with ``value``."""
    future: Future = Future()
    future.set_result(value)
    return future


def failed(error: BaseException) -> Future:
    """Return a future already completed with ``error``."""
    future: Future = Future()
    future.set_exception(error)
    return future


def _call(fn: Callable, *args) -> Future:
    """Call ``fn`` and normalize its outcome (value, future or raise) to a future."""
    try:
        value = fn(*args)
    except Exception as e:
        return failed(e)
    if isinstance(value, Future):
        return value
    return resolved(value)


def _forward(source: Future, target: Future) -> None:
    def _done(f: Future) -> None:
        error = f.exception()
        if error is not None:
            target.set_exception(error)
        else:
            target.set_result(f.result())

    source.add_done_callback(_done)


def then(future: Future, fn: Callable[[Any], Any]) -> Future:
    """
    Chain a continuation onto ``future``.

    The returned future resolves to ``fn(result)``; if ``fn`` returns a
    future it is flattened. A failure of ``future`` or of ``fn`` propagates
    without calling anything further.
    """
    chained: Future = Future()

    def _done(source: Future) -> None:
        error = source.exception()
        if error is not None:
            chained.set_exception(error)
            return
        _forward(_call(fn, source.result()), chained)

    future.add_done_callback(_done)
    return chained


def two_phase(
    first: Callable[[], Any],
    second: Callable[[Any], Any],
    compensate: Callable[[Any], Any],
) -> Future:
    """
    Run ``first``; once it succeeds run ``second(first_result)``.

    If ``second`` fails, ``compensate(first_result)`` undoes the first
    write and the returned future fails with the error of ``second``.
    A failing compensation is logged; it never replaces the original error.
    A failure of ``first`` propagates without running anything else.

    Resolves to ``(first_result, second_result)``.
    """
    outcome: Future = Future()

    def _after_first(first_future: Future) -> None:
        error = first_future.exception()
        if error is not None:
            outcome.set_exception(error)
            return
        first_result = first_future.result()

        def _after_second(second_future: Future) -> None:
            second_error = second_future.exception()
            if second_error is None:
                outcome.set_result((first_result, second_future.result()))
                return

            logger.error(
                f"Second write failed, compensating first write: {second_error}"
            )

            def _after_compensation(compensation: Future) -> None:
                compensation_error = compensation.exception()
                if compensation_error is not None:
                    logger.error(
                        f"Compensation failed: {compensation_error}",
                        exc_info=compensation_error,
                    )
                outcome.set_exception(second_error)

            _call(compensate, first_result).add_done_callback(_after_compensation)

        _call(second, first_result).add_done_callback(_after_second)

    _call(first).add_done_callback(_after_first)
    return outcome


def _attach_callback(future: Future, callback: Optional[CompletionCallback]) -> None:
    if callback is None:
        return

    def _done(f: Future) -> None:
        error = f.exception()
        try:
            callback(error, None if error is not None else f.result())
        except Exception as e:
            logger.error(f"Completion callback raised: {e}", exc_info=True)

    future.add_done_callback(_done)


# ===========================================
# Collection
# ===========================================


def document_from_row(row) -> dict:
    """Convert an ORM row into a plain document dict (column name -> value)."""
    return {column.key: getattr(row, column.key) for column in row.__table__.columns}


class DocumentCollection:
    """
    One table viewed as a document collection.

    Args:
        model: SQLAlchemy model class backing the collection
        session_factory: Callable returning a new Session
        executor: ImmediateExecutor or DeferredExecutor
    """

    def __init__(self, model, session_factory: Callable[[], Session], executor):
        self.model = model
        self._session_factory = session_factory
        self._executor = executor
        # Serializes list read-modify-write within this process; SQLite has no row locks
        self._list_lock = threading.Lock()

    @property
    def name(self) -> str:
        return self.model.__tablename__

    @property
    def execution_mode(self) -> str:
        return self._executor.mode

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    # ---- selectors ----

    def _coerce(self, key: str, value: Any) -> Any:
        column = self.model.__table__.columns[key]
        if isinstance(column.type, Uuid) and isinstance(value, str):
            return uuid.UUID(value)
        return value

    def _criteria(self, selector: Selector) -> list:
        if not isinstance(selector, dict):
            selector = {"id": selector}
        if not selector:
            raise ValueError("Empty selector is not allowed")
        return [
            getattr(self.model, key) == self._coerce(key, value)
            for key, value in selector.items()
        ]

    # ---- reads (always inline) ----

    def find_one(self, selector: Selector) -> Optional[dict]:
        with self._session_factory() as session:
            row = session.execute(
                select(self.model).where(*self._criteria(selector))
            ).scalars().first()
            return document_from_row(row) if row is not None else None

    def find(self, selector: Selector) -> list[dict]:
        with self._session_factory() as session:
            rows = session.execute(
                select(self.model).where(*self._criteria(selector))
            ).scalars().all()
            return [document_from_row(row) for row in rows]

    # ---- mutations ----

    def insert(self, values: dict, callback: Optional[CompletionCallback] = None) -> Future:
        """Insert a document; resolves to the new id."""
        future = self._executor.submit(self._insert, dict(values))
        _attach_callback(future, callback)
        return future

    def update(
        self,
        selector: Selector,
        patch: dict,
        callback: Optional[CompletionCallback] = None,
    ) -> Future:
        """
        Update matching documents; resolves to the affected count.

        ``patch`` is either plain column assignments, ``{"$set": {...}}``,
        or ``{"$push": {col: value}}`` / ``{"$pull": {col: value}}`` for
        JSON list columns.
        """
        future = self._executor.submit(self._update, selector, patch)
        _attach_callback(future, callback)
        return future

    def remove(self, selector: Selector, callback: Optional[CompletionCallback] = None) -> Future:
        """Delete matching documents; resolves to the affected count."""
        future = self._executor.submit(self._remove, selector)
        _attach_callback(future, callback)
        return future

    def _insert(self, values: dict):
        with self._session_factory() as session:
            row = self.model(**values)
            session.add(row)
            session.commit()
            logger.debug(f"Inserted into {self.name}: {row.id}")
            return row.id

    def _update(self, selector: Selector, patch: dict) -> int:
        list_ops = {key: patch[key] for key in ("$push", "$pull") if key in patch}
        assignments = patch.get("$set", {}) if "$set" in patch else {
            key: value for key, value in patch.items() if not key.startswith("$")
        }

        if not list_ops:
            with self._session_factory() as session:
                result = session.execute(
                    update(self.model)
                    .where(*self._criteria(selector))
                    .values(**assignments)
                    .execution_options(synchronize_session=False)
                )
                session.commit()
                return result.rowcount

        with self._list_lock:
            return self._update_lists(selector, assignments, list_ops)

    def _update_lists(self, selector: Selector, assignments: dict, list_ops: dict) -> int:
        """Apply $push / $pull with the matching rows locked until commit."""
        with self._session_factory() as session:
            rows = session.execute(
                select(self.model)
                .where(*self._criteria(selector))
                .with_for_update()
            ).scalars().all()
            for row in rows:
                for key, value in assignments.items():
                    setattr(row, key, value)
                for column, value in list_ops.get("$push", {}).items():
                    setattr(row, column, list(getattr(row, column) or []) + [value])
                for column, value in list_ops.get("$pull", {}).items():
                    setattr(
                        row,
                        column,
                        [item for item in (getattr(row, column) or []) if item != value],
                    )
            session.commit()
            return len(rows)

    def _remove(self, selector: Selector) -> int:
        with self._session_factory() as session:
            result = session.execute(
                delete(self.model)
                .where(*self._criteria(selector))
                .execution_options(synchronize_session=False)
            )
            session.commit()
            return result.rowcount
