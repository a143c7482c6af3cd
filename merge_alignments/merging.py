"""Lazy k-way merge of sorted per-source record iterators."""

from __future__ import annotations

import heapq
import logging
from typing import Any, Callable, Iterator, List, Optional, Sequence, Tuple

from .logging_utils import (
    ClosedIteratorError,
    SourceError,
    UnsupportedOperationError,
    handle_critical_error,
    handle_non_critical_error,
    log_message,
)
from .naming import NameCatalogue, source_label

SEQUENCE_ORDERS = ("name", "catalogue")


def record_chrom(record) -> Optional[str]:
    chrom = getattr(record, "chrom", None)
    if chrom is None:
        chrom = getattr(record, "reference_name", None)
    return chrom


def record_start(record) -> int:
    start = getattr(record, "start", None)
    if start is None:
        start = getattr(record, "reference_start", -1)
    return start


def make_ordering_key(
    catalogue: NameCatalogue,
    resolver: Callable[[str], str],
    sequence_order: str = "name",
) -> Callable[[int, Any], Tuple]:
    """Return ``key(source_index, record)`` giving the record's ordering key.

    The key is ``(canonical name, start)`` with the name compared as a string
    (``sequence_order="name"``) or by its catalogue rank
    (``sequence_order="catalogue"``). Records without a sequence name sort
    after every placed record.
    """

    if sequence_order not in SEQUENCE_ORDERS:
        raise ValueError(f"Unknown sequence order: {sequence_order!r}")

    def canonical(source_index: int, chrom: str) -> str:
        name = catalogue.canonical_name(source_index, chrom)
        return name if name is not None else resolver(chrom)

    if sequence_order == "catalogue":
        unplaced = len(catalogue.sequence_names) + 1

        def key(source_index: int, record) -> Tuple:
            chrom = record_chrom(record)
            if chrom is None:
                return (unplaced, record_start(record))
            return (catalogue.rank(canonical(source_index, chrom)), record_start(record))

        return key

    def key(source_index: int, record) -> Tuple:
        chrom = record_chrom(record)
        if chrom is None:
            return (1, "", record_start(record))
        return (0, canonical(source_index, chrom), record_start(record))

    return key


class _Cursor:
    """A child iterator plus the record it will hand out next."""

    __slots__ = ("source_index", "iterator", "record", "key")

    def __init__(self, source_index: int, iterator: Iterator[Any]):
        self.source_index = source_index
        self.iterator = iterator
        self.record = None
        self.key: Tuple = ()

    def advance(self, ordering_key) -> bool:
        """Buffer the next record; return False once the iterator is exhausted."""
        try:
            self.record = next(self.iterator)
        except StopIteration:
            self.record = None
            return False
        self.key = ordering_key(self.source_index, self.record)
        return True


class MergedRecordIterator:
    """Iterate several sorted record iterators as one sorted stream.

    ``open_child(source_index, source)`` opens the child iterator for one
    source, or returns ``None`` to leave that source out. Every opened child
    is remembered until :meth:`close`, whether or not it still has records, so
    closing mid-stream never leaks one. Equal keys are emitted in source
    order.
    """

    def __init__(
        self,
        sources: Sequence[Any],
        open_child: Callable[[int, Any], Optional[Iterator[Any]]],
        ordering_key: Callable[[int, Any], Tuple],
    ):
        self._sources = sources
        self._ordering_key = ordering_key
        self._opened: List[Tuple[int, Iterator[Any]]] = []
        self._heap: List[Tuple[Tuple, int, _Cursor]] = []
        self._closed = False
        self._failure: Optional[SourceError] = None
        self._last_source: Optional[int] = None
        try:
            self._open(open_child)
        except BaseException:
            self.close()
            raise

    def _fail(self, verb: str, source_index: int, exc: BaseException) -> None:
        label = source_label(self._sources[source_index])
        handle_critical_error(
            f"Failed to {verb} records from {label}: {exc}",
            SourceError,
            exc_info=exc,
            source_index=source_index,
            source_label=label,
        )

    def _open(self, open_child) -> None:
        for index, source in enumerate(self._sources):
            try:
                child = open_child(index, source)
            except Exception as exc:
                self._fail("open", index, exc)
            if child is None:
                continue
            self._opened.append((index, child))
            cursor = _Cursor(index, iter(child))
            try:
                has_record = cursor.advance(self._ordering_key)
            except Exception as exc:
                self._fail("read", index, exc)
            if has_record:
                self._heap.append((cursor.key, index, cursor))
            else:
                log_message(f"Source {index} contributes no records", level=logging.DEBUG)
        heapq.heapify(self._heap)
        log_message(
            f"Opened {len(self._opened)} child iterator(s); {len(self._heap)} with records",
            level=logging.DEBUG,
        )

    def __iter__(self) -> "MergedRecordIterator":
        return self

    def has_next(self) -> bool:
        return bool(self._heap)

    def __next__(self):
        if self._closed:
            raise ClosedIteratorError("Merged iterator is closed")
        if self._failure is not None:
            raise SourceError(
                f"Merged iteration already failed: {self._failure}",
                source_index=self._failure.source_index,
                source_label=self._failure.source_label,
            ) from self._failure
        if not self._heap:
            raise StopIteration
        _, index, cursor = self._heap[0]
        record = cursor.record
        try:
            has_record = cursor.advance(self._ordering_key)
        except Exception as exc:
            # A faulting child fails the whole merge; children stay open until close().
            self._heap.clear()
            try:
                self._fail("read", index, exc)
            except SourceError as failure:
                self._failure = failure
                raise
        self._last_source = index
        if has_record:
            heapq.heapreplace(self._heap, (cursor.key, index, cursor))
        else:
            heapq.heappop(self._heap)
            log_message(f"Source {index} exhausted", level=logging.DEBUG)
        return record

    @property
    def last_source(self) -> Optional[int]:
        """Index of the source that supplied the record last returned by ``next()``."""
        return self._last_source

    @property
    def failed(self) -> bool:
        return self._failure is not None

    def remove(self) -> None:
        raise UnsupportedOperationError("Remove is not supported by the merged iterator")

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Close every child iterator that was opened; safe to call repeatedly."""
        if self._closed:
            return
        self._closed = True
        opened, self._opened = self._opened, []
        self._heap.clear()
        for index, child in opened:
            close = getattr(child, "close", None)
            if close is None:
                continue
            try:
                close()
            except Exception as exc:
                handle_non_critical_error(
                    f"Failed to close iterator of {source_label(self._sources[index])}: {exc}"
                )
        log_message(f"Closed {len(opened)} child iterator(s)", level=logging.DEBUG)

    def __enter__(self) -> "MergedRecordIterator":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = [
    "MergedRecordIterator",
    "SEQUENCE_ORDERS",
    "make_ordering_key",
    "record_chrom",
    "record_start",
]
