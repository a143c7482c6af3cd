"""Record sources consumed by the merged reader.

A record source is one sorted, queryable provider of alignment records, such
as a single BAM file. :class:`RecordSource` names the operations the merged
reader relies on; :class:`BamRecordSource` implements them on top of
:class:`pysam.AlignmentFile`.
"""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Iterator, List, Optional, Set

import pysam

from .logging_utils import ValidationError, handle_critical_error, log_message


@dataclass(frozen=True)
class AlignmentRecord:
    """A single alignment as yielded by a record source.

    ``start`` and ``end`` are 0-based, half-open. ``payload`` is opaque to the
    merge engine and typically carries bases, qualities or block data.
    """

    chrom: str
    start: int
    end: int
    name: str = ""
    strand: str = "+"
    is_paired: bool = False
    is_proper_pair: bool = False
    is_first_of_pair: bool = False
    payload: Any = field(default=None, compare=False)


class RecordSource(ABC):
    """Interface every input handed to the merged reader must provide."""

    @abstractmethod
    def sequence_names(self) -> List[str]:
        """Return the source-local sequence names, in header order."""

    @abstractmethod
    def iterator(self) -> Iterator[Any]:
        """Return a closeable iterator over every record in the source."""

    @abstractmethod
    def query(self, chrom: str, start: int, end: int, contained: bool = False) -> Iterator[Any]:
        """Return a closeable iterator over records in ``[start, end)`` on *chrom*.

        With ``contained`` only records lying fully inside the interval are
        returned, otherwise every overlapping record.
        """

    @abstractmethod
    def header(self) -> Optional[dict]:
        """Return the source header as a pysam-style dict, or ``None``."""

    @abstractmethod
    def has_index(self) -> bool:
        """Return True when the source supports indexed range queries."""

    @abstractmethod
    def platforms(self) -> Optional[Set[str]]:
        """Return the sequencing platform tags declared by the source."""

    @abstractmethod
    def close(self) -> None:
        """Release any handle held by the source."""


def _open_mode(path: str) -> str:
    lower = path.lower()
    if lower.endswith(".bam"):
        return "rb"
    if lower.endswith(".cram"):
        return "rc"
    return "r"


def record_overlaps(record, start: int, end: int, contained: bool) -> bool:
    """Return True if *record* passes the overlap or contained filter."""

    rec_start = record.reference_start
    rec_end = record.reference_end if record.reference_end is not None else rec_start + 1
    if contained:
        return rec_start >= start and rec_end <= end
    return rec_start < end and rec_end > start


class BamRecordSource(RecordSource):
    """Record source backed by a BAM, CRAM or SAM file opened with pysam."""

    def __init__(self, path: str | os.PathLike[str], index_path: Optional[str] = None):
        self.path = os.fspath(path)
        if not os.path.exists(self.path):
            handle_critical_error(f"Alignment file does not exist: {self.path}", ValidationError)
        self.index_path = index_path
        self._mode = _open_mode(self.path)
        try:
            self._file = pysam.AlignmentFile(self.path, self._mode, index_filename=index_path)
        except (OSError, ValueError) as exc:
            handle_critical_error(
                f"Failed to open alignment file {self.path}: {exc}",
                ValidationError,
                exc_info=exc,
            )
        log_message(f"Opened record source {self.path}", level=logging.DEBUG)

    def __repr__(self) -> str:
        return f"BamRecordSource({self.path!r})"

    def sequence_names(self) -> List[str]:
        return list(self._file.references)

    def _reopen(self) -> pysam.AlignmentFile:
        # Each iterator gets its own handle so several can be open at once.
        return pysam.AlignmentFile(self.path, self._mode, index_filename=self.index_path)

    def iterator(self) -> Iterator[Any]:
        handle = self._reopen()
        try:
            for segment in handle.fetch(until_eof=True):
                yield segment
        finally:
            handle.close()

    def query(self, chrom: str, start: int, end: int, contained: bool = False) -> Iterator[Any]:
        handle = self._reopen()
        try:
            for segment in handle.fetch(chrom, start, end):
                if record_overlaps(segment, start, end, contained):
                    yield segment
        finally:
            handle.close()

    def header(self) -> Optional[dict]:
        header = self._file.header
        if header is None:
            return None
        as_dict = header.to_dict()
        return as_dict or None

    def has_index(self) -> bool:
        try:
            return self._file.has_index()
        except ValueError:
            return False

    def platforms(self) -> Optional[Set[str]]:
        header = self.header() or {}
        tags = {rg["PL"] for rg in header.get("RG", []) if rg.get("PL")}
        return tags or None

    def close(self) -> None:
        self._file.close()


__all__ = [
    "AlignmentRecord",
    "RecordSource",
    "BamRecordSource",
    "record_overlaps",
]
