"""Validation routines for merge inputs and query regions."""

from __future__ import annotations

import os
import re
from typing import Iterable, List, Optional, Sequence, Tuple

from .headers import declared_sort_order
from .logging_utils import (
    ValidationError,
    handle_critical_error,
    handle_non_critical_error,
    log_message,
)

_REGION_RE = re.compile(r"^(?P<chrom>[^:]+?)(?::(?P<start>[\d,]+)(?:-(?P<end>[\d,]+))?)?$")
_INDEX_SUFFIXES = {
    ".bam": (".bai", ".csi"),
    ".cram": (".crai",),
}


def validate_interval(start: int, end: int) -> None:
    """Reject negative or inverted 0-based half-open intervals."""

    if start < 0:
        handle_critical_error(f"Query start must not be negative: {start}", ValidationError)
    if end < start:
        handle_critical_error(f"Query end {end} lies before start {start}", ValidationError)


def parse_region(region: str) -> Tuple[str, Optional[int], Optional[int]]:
    """Parse ``chr:start-end`` (1-based, inclusive) into a 0-based half-open region.

    ``chr`` alone yields ``None`` bounds; ``chr:start`` covers a single base.
    Thousands separators are accepted.
    """

    match = _REGION_RE.match(region.strip()) if region else None
    if match is None:
        handle_critical_error(f"Malformed region: {region!r}", ValidationError)
    chrom = match.group("chrom")
    if match.group("start") is None:
        return chrom, None, None
    start = int(match.group("start").replace(",", ""))
    end_text = match.group("end")
    end = int(end_text.replace(",", "")) if end_text else start
    if start < 1 or end < start:
        handle_critical_error(f"Malformed region bounds: {region!r}", ValidationError)
    return chrom, start - 1, end


def find_index(path: str) -> Optional[str]:
    """Return the index file next to *path*, if one exists."""

    lower = path.lower()
    for ext, suffixes in _INDEX_SUFFIXES.items():
        if not lower.endswith(ext):
            continue
        stem = path[: -len(ext)]
        for suffix in suffixes:
            for candidate in (path + suffix, stem + suffix):
                if os.path.exists(candidate):
                    return candidate
    return None


def validate_input_paths(paths: Sequence[str], verbose: bool = False) -> List[str]:
    """Check every input exists; warn for inputs that carry no index."""

    if not paths:
        handle_critical_error("No input alignment files specified.", ValidationError)
    validated: List[str] = []
    for path in paths:
        if not os.path.isfile(path):
            handle_critical_error(f"Input file does not exist: {path}", ValidationError)
        if find_index(path) is None:
            handle_non_critical_error(f"{path} has no index; region queries will fail for it.")
        else:
            log_message(f"Found index for {path}", verbose)
        validated.append(path)
    return validated


def check_sort_orders(headers: Iterable[Optional[dict]], labels: Sequence[str]) -> int:
    """Warn about sources not declared coordinate-sorted; return how many."""

    unsorted = 0
    for header, label in zip(headers, labels):
        order = declared_sort_order(header)
        if order != "coordinate":
            unsorted += 1
            handle_non_critical_error(
                f"{label} declares sort order {order or 'none'}; merged output may be out of order."
            )
    return unsorted


__all__ = [
    "check_sort_orders",
    "find_index",
    "parse_region",
    "validate_input_paths",
    "validate_interval",
]
