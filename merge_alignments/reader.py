"""Present several sorted record sources as one logically merged reader."""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence, Set

from .headers import merge_headers
from .logging_utils import (
    ClosedIteratorError,
    SourceError,
    ValidationError,
    handle_critical_error,
    handle_non_critical_error,
    log_message,
)
from .merging import MergedRecordIterator, make_ordering_key
from .naming import as_resolver, build_name_catalogue, source_label
from .validation import validate_interval

_UNSET = object()


class MergedAlignmentReader:
    """Logical merge of alignment sources that each arrive sorted.

    Sequence naming conventions may differ between sources ("1" vs "chr1"),
    so the reader advertises canonical names from *resolver* and keeps a name
    map per source to translate queries back. The catalogue and the raw
    headers are read once, here; a source that cannot report them makes
    construction fail.

    ``has_index()`` reports the index state of the first source only and does
    not check that the other sources agree.
    """

    def __init__(self, sources: Sequence[Any], resolver=None, *, sequence_order: str = "name"):
        self._sources = tuple(sources)
        if not self._sources:
            handle_critical_error("At least one record source is required", ValidationError)
        self._resolve = as_resolver(resolver)
        self._catalogue = build_name_catalogue(self._sources, self._resolve)
        self._ordering_key = make_ordering_key(self._catalogue, self._resolve, sequence_order)
        self._source_headers = self._load_source_headers()
        self._header = _UNSET
        self._closed = False
        log_message(
            f"Merged reader over {len(self._sources)} source(s), "
            f"{len(self._catalogue.sequence_names)} sequence(s)",
            level=logging.DEBUG,
        )

    def _load_source_headers(self) -> List[Optional[dict]]:
        headers: List[Optional[dict]] = []
        for index, source in enumerate(self._sources):
            try:
                headers.append(source.header())
            except Exception as exc:
                handle_critical_error(
                    f"Failed to read header from {source_label(source)}: {exc}",
                    SourceError,
                    exc_info=exc,
                    source_index=index,
                    source_label=source_label(source),
                )
        return headers

    @property
    def sources(self) -> tuple:
        return self._sources

    @property
    def catalogue(self):
        return self._catalogue

    @property
    def resolver(self):
        return self._resolve

    @property
    def source_headers(self) -> List[Optional[dict]]:
        return list(self._source_headers)

    def sequence_names(self) -> List[str]:
        return list(self._catalogue.sequence_names)

    def platforms(self) -> Set[str]:
        platforms: Set[str] = set()
        for source in self._sources:
            plf = source.platforms()
            if plf is not None:
                platforms.update(plf)
        return platforms

    def has_index(self) -> bool:
        return self._sources[0].has_index()

    def header(self) -> Optional[dict]:
        """Return the merged header, or ``None`` when no source declares a sort order."""
        if self._header is _UNSET:
            self._header = merge_headers(self._source_headers, self._resolve)
        return self._header

    def _ensure_open(self) -> None:
        if self._closed:
            raise ClosedIteratorError("Merged reader is closed")

    def iterator(self) -> MergedRecordIterator:
        self._ensure_open()
        return MergedRecordIterator(
            self._sources,
            lambda index, source: source.iterator(),
            self._ordering_key,
        )

    __iter__ = iterator

    def query(self, chrom: str, start: int, end: int, contained: bool = False) -> MergedRecordIterator:
        """Return a merged iterator over ``[start, end)`` on canonical sequence *chrom*.

        Sources that have no local name for *chrom* are skipped.
        """
        self._ensure_open()
        validate_interval(start, end)
        canonical = self._resolve(chrom)

        def open_child(index: int, source):
            local = self._catalogue.local_name(index, canonical)
            if local is None:
                log_message(
                    f"{source_label(source)} has no sequence for {canonical}; skipped",
                    level=logging.DEBUG,
                )
                return None
            return source.query(local, start, end, contained)

        return MergedRecordIterator(self._sources, open_child, self._ordering_key)

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Close every source once; later calls do nothing."""
        if self._closed:
            return
        self._closed = True
        for source in self._sources:
            try:
                source.close()
            except Exception as exc:
                handle_non_critical_error(f"Failed to close {source_label(source)}: {exc}")
        log_message(f"Closed {len(self._sources)} source(s)", level=logging.DEBUG)

    def __enter__(self) -> "MergedAlignmentReader":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = ["MergedAlignmentReader"]
