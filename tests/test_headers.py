"""Tests for merging per-source alignment headers."""

from __future__ import annotations

import pytest

from merge_alignments.headers import declared_sort_order, header_id_maps, merge_headers
from merge_alignments.logging_utils import HeaderConflictError
from merge_alignments.naming import GenomeAliasResolver


def _header(so="coordinate", sq=(("chr1", 1000),), rg=(), co=()):
    header = {"SQ": [{"SN": name, "LN": length} for name, length in sq]}
    if so is not None:
        header["HD"] = {"VN": "1.6", "SO": so}
    if rg:
        header["RG"] = [dict(line) for line in rg]
    if co:
        header["CO"] = list(co)
    return header


def test_declared_sort_order():
    assert declared_sort_order(_header("queryname")) == "queryname"
    assert declared_sort_order(_header(None)) is None
    assert declared_sort_order(None) is None


def test_no_declared_sort_order_means_no_header():
    assert merge_headers([_header(None), None]) is None
    assert merge_headers([]) is None


def test_last_declared_sort_order_wins():
    merged = merge_headers([_header("coordinate"), _header(None), _header("unsorted")])
    assert merged["HD"]["SO"] == "unsorted"


def test_sequences_are_canonical_and_deduplicated():
    first = _header(sq=(("1", 1000), ("2", 500)))
    second = _header(sq=(("chr2", 500), ("chr3", 300)))

    merged = merge_headers([first, None, second], GenomeAliasResolver())

    assert [(line["SN"], line["LN"]) for line in merged["SQ"]] == [
        ("chr1", 1000),
        ("chr2", 500),
        ("chr3", 300),
    ]


def test_conflicting_sequence_lengths_raise():
    with pytest.raises(HeaderConflictError):
        merge_headers([_header(sq=(("chr1", 1000),)), _header(sq=(("chr1", 999),))])


def test_read_groups_union_and_rename_collisions():
    first = _header(rg=({"ID": "rg1", "SM": "s1", "PL": "ILLUMINA"},))
    same = _header(rg=({"ID": "rg1", "SM": "s1", "PL": "ILLUMINA"},))
    clash = _header(rg=({"ID": "rg1", "SM": "s2"}, {"ID": "rg2", "SM": "s3"}))

    merged = merge_headers([first, same, clash])

    assert [line["ID"] for line in merged["RG"]] == ["rg1", "rg1.1", "rg2"]
    assert merged["RG"][1]["SM"] == "s2"
    # Inputs are not modified.
    assert clash["RG"][0]["ID"] == "rg1"


def test_repeated_clashing_read_group_is_renamed_once():
    first = _header(rg=({"ID": "rg1", "SM": "s1"},))
    clash = _header(rg=({"ID": "rg1", "SM": "s2"},))

    merged = merge_headers([first, clash, clash])

    assert [(line["ID"], line["SM"]) for line in merged["RG"]] == [("rg1", "s1"), ("rg1.1", "s2")]
    assert header_id_maps([first, clash, clash]) == [{}, {"RG": {"rg1": "rg1.1"}}, {"RG": {"rg1": "rg1.1"}}]


def test_comments_are_concatenated_once():
    merged = merge_headers([_header(co=("a", "b")), _header(co=("b", "c"))])
    assert merged["CO"] == ["a", "b", "c"]


def test_header_id_maps_list_renames_per_source():
    first = _header(rg=({"ID": "rg1", "SM": "s1"},))
    first["PG"] = [{"ID": "bwa", "PN": "bwa", "VN": "0.7"}]
    second = _header(rg=({"ID": "rg1", "SM": "s2"}, {"ID": "rg2", "SM": "s3"}))
    second["PG"] = [
        {"ID": "bwa", "PN": "bwa", "VN": "0.6"},
        {"ID": "dedup", "PN": "picard", "PP": "bwa"},
    ]

    maps = header_id_maps([first, None, second])

    assert maps == [{}, {}, {"RG": {"rg1": "rg1.1"}, "PG": {"bwa": "bwa.1"}}]
    merged = merge_headers([first, None, second])
    assert [line["ID"] for line in merged["RG"]] == ["rg1", "rg1.1", "rg2"]
    assert {line["ID"]: line.get("PP") for line in merged["PG"]} == {
        "bwa": None,
        "bwa.1": None,
        "dedup": "bwa.1",
    }
