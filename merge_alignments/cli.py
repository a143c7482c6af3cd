"""Command-line entrypoint for merging sorted alignment files."""
from __future__ import annotations

import argparse
import datetime
import logging
import os
import sys
from collections import Counter
from pathlib import Path
from typing import List, Optional

import pysam

from . import validation
from .headers import header_id_maps
from .logging_utils import (
    LOG_FILE,
    MergeAlignmentsError,
    ValidationError,
    configure_logging,
    handle_critical_error,
    handle_non_critical_error,
    log_message,
)
from .merging import SEQUENCE_ORDERS, record_chrom
from .naming import GenomeAliasResolver, load_alias_file
from .reader import MergedAlignmentReader
from .sources import BamRecordSource

MAX_CONTIG_END = 2**31 - 1


def parse_arguments(argv: Optional[List[str]] = None):
    """Parse CLI args for the alignment merging tool."""
    parser = argparse.ArgumentParser(
        prog="merge-alignments",
        description="Present several coordinate-sorted alignment files as one sorted stream.",
    )
    parser.add_argument("inputs", nargs="+", help="Input BAM/CRAM/SAM files, each coordinate-sorted.")
    parser.add_argument(
        "-o",
        "--output",
        dest="output",
        help="Write merged records here (BAM when the name ends in .bam, SAM otherwise).",
    )
    parser.add_argument(
        "-r",
        "--region",
        dest="region",
        help="Restrict to CHR, CHR:POS or CHR:START-END (1-based, inclusive).",
    )
    parser.add_argument(
        "--contained",
        action="store_true",
        help="With --region, keep only records lying fully inside the region.",
    )
    parser.add_argument(
        "--alias-file",
        dest="alias_file",
        help="Tab-separated sequence alias file; first column is the canonical name.",
    )
    parser.add_argument(
        "--no-chr-prefix",
        dest="add_chr_prefix",
        action="store_false",
        help="Do not map bare human contig names (1, X, MT) onto chr-prefixed names.",
    )
    parser.add_argument(
        "--order-by",
        dest="sequence_order",
        choices=SEQUENCE_ORDERS,
        default="catalogue",
        help="Compare sequences by canonical name or by first appearance across inputs.",
    )
    parser.add_argument(
        "--summary",
        action="store_true",
        help="Print per-sequence record counts instead of writing records.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose console logging.")
    args = parser.parse_args(argv)

    if not args.output and not args.summary:
        parser.error("Provide --output or --summary.")
    if args.contained and not args.region:
        parser.error("--contained requires --region.")

    args.inputs = [str(Path(p)) for p in args.inputs]
    return args


def open_sources(paths: List[str]) -> List[BamRecordSource]:
    """Open one record source per path, closing the opened ones if any fails."""
    sources: List[BamRecordSource] = []
    try:
        for path in paths:
            sources.append(BamRecordSource(path, index_path=validation.find_index(path)))
    except BaseException:
        for source in sources:
            source.close()
        raise
    return sources


def _region_bounds(reader: MergedAlignmentReader, chrom: str, start, end):
    if start is not None:
        return start, end
    header = reader.header() or {}
    canonical = reader.resolver(chrom)
    for line in header.get("SQ", []):
        if line.get("SN") == canonical and line.get("LN"):
            return 0, int(line["LN"])
    return 0, MAX_CONTIG_END


def _retarget(segment, reader: MergedAlignmentReader, header: pysam.AlignmentHeader, id_map=None):
    """Rebuild *segment* against the merged header using canonical names.

    *id_map* holds the source's renamed ``RG``/``PG`` IDs from
    :func:`header_id_maps`; matching tags are rewritten to the merged IDs.
    """
    data = segment.to_dict()
    for key in ("ref_name", "next_ref_name"):
        if data.get(key) not in (None, "*", "="):
            data[key] = reader.resolver(data[key])
    if id_map:
        tags = data.get("tags") or []
        for position, tag in enumerate(tags):
            name, kind, value = tag.split(":", 2)
            renamed = id_map.get(name, {}).get(value)
            if renamed is not None:
                tags[position] = f"{name}:{kind}:{renamed}"
    return pysam.AlignedSegment.from_dict(data, header)


def write_records(records, reader: MergedAlignmentReader, output: str, sequence_order: str = "catalogue") -> int:
    merged_header = reader.header()
    if merged_header is None:
        handle_critical_error(
            "Inputs declare no sort order; cannot build a header for the merged output.",
            ValidationError,
        )
    if sequence_order != "catalogue" and merged_header["HD"].get("SO") == "coordinate":
        # Sequences compared by name need not follow the @SQ order written below.
        merged_header = dict(merged_header, HD=dict(merged_header["HD"], SO="unsorted"))
        handle_non_critical_error(
            f"Records ordered by sequence {sequence_order}; writing {output} as SO:unsorted."
        )
    header = pysam.AlignmentHeader.from_dict(merged_header)
    id_maps = header_id_maps(reader.source_headers)
    mode = "wb" if output.lower().endswith(".bam") else "w"
    written = 0
    with pysam.AlignmentFile(output, mode, header=header) as out:
        for segment in records:
            source_index = getattr(records, "last_source", None)
            id_map = id_maps[source_index] if source_index is not None else None
            out.write(_retarget(segment, reader, header, id_map))
            written += 1
    return written


def summarize_records(records, reader: MergedAlignmentReader) -> Counter:
    counts: Counter = Counter()
    for record in records:
        chrom = record_chrom(record)
        counts[reader.resolver(chrom) if chrom is not None else "*"] += 1
    return counts


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_arguments(argv)
    verbose = args.verbose

    try:
        output_dir = os.path.dirname(os.path.abspath(args.output)) if args.output else os.getcwd()
        configure_logging(
            log_level=logging.DEBUG if verbose else logging.INFO,
            log_file=os.path.join(output_dir, LOG_FILE),
            enable_file_logging=bool(args.output),
            enable_console=verbose,
        )
        log_message("Script Execution Log - " + datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S"))

        paths = validation.validate_input_paths(args.inputs, verbose)
        aliases = load_alias_file(args.alias_file) if args.alias_file else None
        resolver = GenomeAliasResolver(aliases=aliases, add_chr_prefix=args.add_chr_prefix)
        region = validation.parse_region(args.region) if args.region else None

        sources = open_sources(paths)
        try:
            reader = MergedAlignmentReader(sources, resolver, sequence_order=args.sequence_order)
        except BaseException:
            for source in sources:
                source.close()
            raise
        with reader:
            validation.check_sort_orders(reader.source_headers, paths)
            if region is None:
                records = reader.iterator()
            else:
                chrom, start, end = region
                start, end = _region_bounds(reader, chrom, start, end)
                records = reader.query(chrom, start, end, args.contained)
            with records:
                if args.summary:
                    counts = summarize_records(records, reader)
                    known = reader.sequence_names()
                    for name in known + [n for n in counts if n not in known]:
                        if counts.get(name):
                            print(f"{name}\t{counts[name]}")
                    log_message(f"Counted {sum(counts.values())} record(s)", verbose)
                else:
                    written = write_records(records, reader, args.output, args.sequence_order)
                    log_message(f"Wrote {written} merged record(s) to {args.output}", verbose)
                    print(f"Wrote: {args.output} x {written}.")
    except MergeAlignmentsError as exc:
        print(f"ERROR: {exc}")
        sys.exit(1)
    except OSError as exc:
        print(f"ERROR: Filesystem error: {exc}")
        sys.exit(1)
    return 0
