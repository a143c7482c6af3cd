"""Shared pytest fixtures for the merge_alignments test suite."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence, Set

import pytest

from merge_alignments.logging_utils import logger
from merge_alignments.sources import AlignmentRecord, RecordSource


class CountingIterator:
    """Child iterator that records how often it is closed."""

    def __init__(self, records: Sequence[AlignmentRecord], fail_after: Optional[int] = None):
        self._records = list(records)
        self._position = 0
        self._fail_after = fail_after
        self.close_count = 0

    def __iter__(self):
        return self

    def __next__(self):
        if self._fail_after is not None and self._position >= self._fail_after:
            raise OSError("simulated read failure")
        if self._position >= len(self._records):
            raise StopIteration
        record = self._records[self._position]
        self._position += 1
        return record

    def close(self) -> None:
        self.close_count += 1


class FakeRecordSource(RecordSource):
    """In-memory record source counting every iterator it hands out."""

    def __init__(
        self,
        records: Sequence[AlignmentRecord] = (),
        *,
        names: Optional[Sequence[str]] = None,
        header: Optional[dict] = None,
        indexed: bool = True,
        platforms: Optional[Set[str]] = None,
        label: str = "fake",
        fail_after: Optional[int] = None,
    ):
        self.records = list(records)
        self.names = list(names) if names is not None else list(dict.fromkeys(r.chrom for r in self.records))
        self._header = header
        self.indexed = indexed
        self._platforms = platforms
        self.label = label
        self.fail_after = fail_after
        self.opened: List[CountingIterator] = []
        self.queries: List[tuple] = []
        self.close_count = 0

    def __repr__(self) -> str:
        return f"FakeRecordSource({self.label!r})"

    def _open(self, records) -> CountingIterator:
        child = CountingIterator(records, self.fail_after)
        self.opened.append(child)
        return child

    def sequence_names(self) -> List[str]:
        return list(self.names)

    def iterator(self) -> CountingIterator:
        return self._open(self.records)

    def query(self, chrom: str, start: int, end: int, contained: bool = False) -> CountingIterator:
        self.queries.append((chrom, start, end, contained))
        if contained:
            selected = [r for r in self.records if r.chrom == chrom and r.start >= start and r.end <= end]
        else:
            selected = [r for r in self.records if r.chrom == chrom and r.start < end and r.end > start]
        return self._open(selected)

    def header(self) -> Optional[dict]:
        return self._header

    def has_index(self) -> bool:
        return self.indexed

    def platforms(self) -> Optional[Set[str]]:
        return self._platforms

    def close(self) -> None:
        self.close_count += 1


def make_records(chrom: str, starts: Sequence[int], *, length: int = 10, tag: str = "") -> List[AlignmentRecord]:
    return [
        AlignmentRecord(chrom=chrom, start=s, end=s + length, name=f"{tag}{chrom}:{s}")
        for s in starts
    ]


@pytest.fixture
def fake_source():
    """Factory fixture building :class:`FakeRecordSource` instances."""

    def _factory(*args, **kwargs) -> FakeRecordSource:
        return FakeRecordSource(*args, **kwargs)

    return _factory


@pytest.fixture
def merger_caplog(caplog, monkeypatch):
    """``caplog`` wired to the non-propagating ``alignment_merger`` logger."""

    monkeypatch.setattr(logger, "propagate", True)
    with caplog.at_level(logging.DEBUG, logger=logger.name):
        yield caplog
