"""Merge per-source alignment headers into one header.

Headers are handled as the dicts produced by ``pysam.AlignmentHeader.to_dict``
(``HD``, ``SQ``, ``RG``, ``PG`` and ``CO`` sections).
"""

from __future__ import annotations

import copy
import logging
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .logging_utils import HeaderConflictError, handle_critical_error, log_message


def declared_sort_order(header: Optional[dict]) -> Optional[str]:
    """Return the ``@HD SO`` value of *header*, or ``None`` when undeclared."""

    if not header:
        return None
    return (header.get("HD") or {}).get("SO") or None


def _unique_id(base: str, taken: Dict[str, dict]) -> str:
    suffix = 1
    while f"{base}.{suffix}" in taken:
        suffix += 1
    return f"{base}.{suffix}"


def _matching_id(line: dict, merged: Dict[str, dict]) -> Optional[str]:
    """Return the merged ID already holding *line*, renamed or not."""
    line_id = line["ID"]
    if merged.get(line_id) == line:
        return line_id
    prefix = f"{line_id}."
    for key, kept in merged.items():
        if key.startswith(prefix) and {**kept, "ID": line_id} == line:
            return key
    return None


def _merge_by_id(section: str, headers: Sequence[Optional[dict]]) -> Tuple[List[dict], List[Dict[str, str]]]:
    """Union the ``ID``-keyed lines of *section*, renaming colliding IDs.

    Returns the merged lines and, for every input header, the IDs it must
    rewrite (``old ID -> merged ID``). Missing headers get an empty map.
    """

    merged: Dict[str, dict] = {}
    renames: List[Dict[str, str]] = []
    for header in headers:
        mapping: Dict[str, str] = {}
        added: List[dict] = []
        for line in (header or {}).get(section, []) or []:
            line_id = line.get("ID")
            if line_id is None:
                continue
            if line_id not in merged:
                kept = copy.deepcopy(line)
                merged[line_id] = kept
                added.append(kept)
                continue
            target = _matching_id(line, merged)
            if target is None:
                target = _unique_id(line_id, merged)
                log_message(
                    f"{section} ID '{line_id}' differs between sources; renamed to '{target}'",
                    level=logging.DEBUG,
                )
                kept = copy.deepcopy(line)
                kept["ID"] = target
                merged[target] = kept
                added.append(kept)
            if target != line_id:
                mapping[line_id] = target
        if section == "PG":
            for kept in added:
                if kept.get("PP") in mapping:
                    kept["PP"] = mapping[kept["PP"]]
        renames.append(mapping)
    return list(merged.values()), renames


def header_id_maps(headers: Sequence[Optional[dict]]) -> List[Dict[str, Dict[str, str]]]:
    """Per input header, the ``RG`` and ``PG`` IDs renamed by :func:`merge_headers`.

    Each entry maps a section name to ``{old ID: merged ID}`` and only lists
    IDs that changed, so records from that source can have their ``RG`` and
    ``PG`` tags rewritten to match the merged header.
    """

    maps: List[Dict[str, Dict[str, str]]] = [{} for _ in headers]
    for section in ("RG", "PG"):
        _, renames = _merge_by_id(section, headers)
        for entry, mapping in zip(maps, renames):
            if mapping:
                entry[section] = mapping
    return maps


def _merge_sequences(headers: Sequence[dict], resolve: Callable[[str], str]) -> List[dict]:
    merged: Dict[str, dict] = {}
    for header in headers:
        for line in header.get("SQ", []) or []:
            name = resolve(line["SN"])
            existing = merged.get(name)
            if existing is None:
                entry = copy.deepcopy(line)
                entry["SN"] = name
                merged[name] = entry
            elif existing.get("LN") != line.get("LN"):
                handle_critical_error(
                    "Sequence dictionaries conflict across sources. "
                    f"Sequence '{name}' has length {existing.get('LN')!r} and {line.get('LN')!r}.",
                    exc_cls=HeaderConflictError,
                )
    return list(merged.values())


def merge_headers(
    headers: Sequence[Optional[dict]],
    resolver: Optional[Callable[[str], str]] = None,
) -> Optional[dict]:
    """Combine *headers* into a single header dict.

    Missing headers (``None``) are skipped. The merged sort order is the last
    one declared; when no header declares one there is nothing sensible to
    merge under and ``None`` is returned. Sequence names are passed through
    *resolver* so the merged dictionary speaks canonical names.
    """

    present = [h for h in headers if h]
    sort_order = None
    version = None
    for header in present:
        declared = declared_sort_order(header)
        if declared is not None:
            sort_order = declared
            if version is None:
                version = header["HD"].get("VN")
    if sort_order is None:
        log_message("No source header declares a sort order; no merged header", level=logging.DEBUG)
        return None

    resolve = resolver or (lambda name: name)
    merged: dict = {"HD": {"VN": version or "1.6", "SO": sort_order}}

    sequences = _merge_sequences(present, resolve)
    if sequences:
        merged["SQ"] = sequences
    for section in ("RG", "PG"):
        lines, _ = _merge_by_id(section, present)
        if lines:
            merged[section] = lines

    comments: List[str] = []
    for header in present:
        for comment in header.get("CO", []) or []:
            if comment not in comments:
                comments.append(comment)
    if comments:
        merged["CO"] = comments
    return merged


__all__ = ["declared_sort_order", "header_id_maps", "merge_headers"]
