"""Merged reading of several sorted alignment files.

This package presents any number of independently sorted, position-indexed
alignment sources as one sorted stream without loading their records into
memory. Sequence names are reconciled through a canonical name resolver so
inputs that call the same contig "1" and "chr1" still interleave correctly.

Importing the package immediately verifies that the required runtime
dependency :mod:`pysam` is available so that later operations can rely on it
without deferred import errors.
"""

from __future__ import annotations


def _import_dependency(name: str):
    try:
        module = __import__(name)
    except ImportError as exc:  # pragma: no cover - exercised when dependency missing
        raise ModuleNotFoundError(
            f"The '{name}' package is required for merged alignment reading. "
            f"Please install it with 'pip install {name}'."
        ) from exc
    return module


pysam = _import_dependency("pysam")

from .headers import header_id_maps, merge_headers  # noqa: E402
from .logging_utils import (  # noqa: E402
    ClosedIteratorError,
    HeaderConflictError,
    MergeAlignmentsError,
    SourceError,
    UnsupportedOperationError,
    ValidationError,
    configure_logging,
)
from .merging import MergedRecordIterator  # noqa: E402
from .naming import GenomeAliasResolver, build_name_catalogue, load_alias_file  # noqa: E402
from .reader import MergedAlignmentReader  # noqa: E402
from .sources import AlignmentRecord, BamRecordSource, RecordSource  # noqa: E402

__all__ = [
    "AlignmentRecord",
    "BamRecordSource",
    "ClosedIteratorError",
    "GenomeAliasResolver",
    "HeaderConflictError",
    "MergeAlignmentsError",
    "MergedAlignmentReader",
    "MergedRecordIterator",
    "RecordSource",
    "SourceError",
    "UnsupportedOperationError",
    "ValidationError",
    "build_name_catalogue",
    "configure_logging",
    "header_id_maps",
    "load_alias_file",
    "merge_headers",
]
