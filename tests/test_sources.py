"""Tests for the pysam-backed record source."""

from __future__ import annotations

import pytest

from bam_helpers import make_header, write_bam
from merge_alignments import BamRecordSource, MergedAlignmentReader
from merge_alignments.logging_utils import ValidationError
from merge_alignments.sources import AlignmentRecord, record_overlaps


@pytest.fixture
def bam_path(tmp_path):
    reads = [("r1", "1", 50), ("r2", "1", 100), ("r3", "1", 185), ("r4", "2", 10)]
    return write_bam(tmp_path / "sample.bam", make_header(["1", "2"]), reads)


def test_bam_source_reports_catalogue_and_metadata(bam_path):
    source = BamRecordSource(bam_path)
    try:
        assert source.sequence_names() == ["1", "2"]
        assert source.has_index()
        assert source.platforms() == {"ILLUMINA"}
        assert source.header()["HD"]["SO"] == "coordinate"
    finally:
        source.close()


def test_bam_source_full_scan_and_queries(bam_path):
    source = BamRecordSource(bam_path)
    try:
        assert [s.query_name for s in source.iterator()] == ["r1", "r2", "r3", "r4"]
        overlapping = [s.query_name for s in source.query("1", 110, 190)]
        contained = [s.query_name for s in source.query("1", 100, 190, contained=True)]
    finally:
        source.close()

    assert overlapping == ["r2", "r3"]
    assert contained == ["r2"]


def test_bam_source_iterators_close_early(bam_path):
    source = BamRecordSource(bam_path)
    try:
        iterator = source.iterator()
        assert next(iterator).query_name == "r1"
        iterator.close()
        with pytest.raises(StopIteration):
            next(iterator)
    finally:
        source.close()


def test_missing_bam_is_validation_error(tmp_path):
    with pytest.raises(ValidationError):
        BamRecordSource(tmp_path / "missing.bam")


def test_unindexed_bam_reports_no_index(tmp_path):
    path = write_bam(tmp_path / "plain.bam", make_header(["chr1"]), [("r1", "chr1", 5)], index=False)
    source = BamRecordSource(path)
    try:
        assert not source.has_index()
        assert [s.query_name for s in source.iterator()] == ["r1"]
    finally:
        source.close()


def test_merged_reader_over_bam_files(tmp_path):
    a = write_bam(tmp_path / "a.bam", make_header(["1", "2"]), [("a1", "1", 10), ("a2", "1", 300), ("a3", "2", 5)])
    b = write_bam(
        tmp_path / "b.bam",
        make_header(["chr1", "chr3"], platform="ONT", rg="rg2"),
        [("b1", "chr1", 150), ("b2", "chr3", 1)],
    )

    with MergedAlignmentReader([BamRecordSource(a), BamRecordSource(b)], sequence_order="catalogue") as reader:
        assert reader.sequence_names() == ["chr1", "chr2", "chr3"]
        assert reader.platforms() == {"ILLUMINA", "ONT"}
        assert [s.query_name for s in reader.iterator()] == ["a1", "b1", "a2", "a3", "b2"]
        with reader.query("chr1", 0, 200) as merged:
            assert [s.query_name for s in merged] == ["a1", "b1"]
        with reader.query("chr2", 0, 200) as merged:
            assert [s.query_name for s in merged] == ["a3"]
        header = reader.header()

    assert [line["SN"] for line in header["SQ"]] == ["chr1", "chr2", "chr3"]
    assert [line["ID"] for line in header["RG"]] == ["rg1", "rg2"]


def test_record_overlaps_uses_reference_coordinates():
    class _Segment:
        reference_start = 100
        reference_end = 120

    assert record_overlaps(_Segment(), 110, 200, contained=False)
    assert not record_overlaps(_Segment(), 110, 200, contained=True)
    assert record_overlaps(_Segment(), 100, 120, contained=True)
    assert not record_overlaps(_Segment(), 120, 200, contained=False)


def test_alignment_record_equality_ignores_payload():
    first = AlignmentRecord("chr1", 1, 5, payload=b"ACGT")
    second = AlignmentRecord("chr1", 1, 5, payload=b"TTTT")
    assert first == second
