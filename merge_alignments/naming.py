"""Canonical sequence names and the per-source name catalogue.

Sources disagree on contig naming ("1" vs "chr1", "MT" vs "chrM"). The merged
reader advertises one canonical name per contig and keeps, for every source,
the mapping back to the name that source understands so range queries can be
translated before they are issued.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .logging_utils import SourceError, ValidationError, handle_critical_error, log_message

_HUMAN_STYLE_NAMES = {str(i) for i in range(1, 23)} | {"X", "Y"}


class GenomeAliasResolver:
    """Map source-local sequence names onto canonical genome names.

    Lookup order: the explicit alias table, then a ``chr``-prefixed or
    unprefixed variant present in ``canonical_names``, then the human-style
    ``chr`` prefix rule. Names nothing applies to are returned unchanged.
    """

    def __init__(
        self,
        aliases: Optional[Mapping[str, str]] = None,
        canonical_names: Optional[Iterable[str]] = None,
        add_chr_prefix: bool = True,
    ):
        self.aliases: Dict[str, str] = dict(aliases or {})
        self.canonical_names = frozenset(canonical_names or ())
        self.add_chr_prefix = add_chr_prefix

    def canonical_name_for(self, name: str) -> str:
        if name in self.aliases:
            return self.aliases[name]
        if self.canonical_names:
            if name in self.canonical_names:
                return name
            for candidate in _prefix_variants(name):
                if candidate in self.canonical_names:
                    return candidate
        if self.add_chr_prefix:
            if name in _HUMAN_STYLE_NAMES:
                return "chr" + name
            if name in {"M", "MT"}:
                return "chrM"
        return name

    __call__ = canonical_name_for


def _prefix_variants(name: str) -> Tuple[str, ...]:
    bare = name[3:] if name.lower().startswith("chr") else name
    if bare.upper() in {"M", "MT"}:
        return ("MT", "M", "chrM", "chrMT")
    return (bare, "chr" + bare)


def load_alias_file(path: str | os.PathLike[str]) -> Dict[str, str]:
    """Read a tab-separated alias file into an ``alias -> canonical`` mapping.

    The first column of each line is the canonical name; every further column
    is an alias for it. Blank lines and lines starting with ``#`` are ignored.
    """

    aliases: Dict[str, str] = {}
    try:
        with open(path, encoding="utf-8") as handle:
            for raw in handle:
                line = raw.rstrip("\n")
                if not line.strip() or line.startswith("#"):
                    continue
                columns = [c.strip() for c in line.split("\t") if c.strip()]
                canonical = columns[0]
                aliases[canonical] = canonical
                for alias in columns[1:]:
                    aliases[alias] = canonical
    except (OSError, UnicodeDecodeError) as exc:
        handle_critical_error(f"Failed to read alias file {path}: {exc}", ValidationError, exc_info=exc)
    return aliases


def as_resolver(resolver) -> Callable[[str], str]:
    """Return a plain ``name -> canonical name`` callable for *resolver*."""

    if resolver is None:
        return GenomeAliasResolver().canonical_name_for
    lookup = getattr(resolver, "canonical_name_for", None)
    if callable(lookup):
        return lookup
    if callable(resolver):
        return resolver
    raise TypeError(f"Unsupported name resolver: {resolver!r}")


def source_label(source) -> str:
    return getattr(source, "path", None) or repr(source)


@dataclass(frozen=True)
class NameCatalogue:
    """Canonical names across all sources plus per-source translations.

    ``local_names[i]`` maps canonical -> local name for source ``i`` and
    ``canonical_names[i]`` is the reverse mapping.
    """

    sequence_names: Tuple[str, ...]
    local_names: Tuple[Dict[str, str], ...]
    canonical_names: Tuple[Dict[str, str], ...]
    _ranks: Dict[str, int] = field(init=False, repr=False, compare=False)

    def local_name(self, source_index: int, canonical: str) -> Optional[str]:
        return self.local_names[source_index].get(canonical)

    def canonical_name(self, source_index: int, local: str) -> Optional[str]:
        return self.canonical_names[source_index].get(local)

    def rank(self, canonical: str) -> int:
        """Return the catalogue position of *canonical*; unknown names sort last."""
        return self._ranks.get(canonical, len(self._ranks))

    def __post_init__(self) -> None:
        object.__setattr__(self, "_ranks", {name: i for i, name in enumerate(self.sequence_names)})


def build_name_catalogue(sources: Sequence, resolver) -> NameCatalogue:
    """Build the canonical name order and per-source name maps.

    Sources are scanned in input order; a canonical name joins the catalogue
    the first time it is seen. If one source reports two local names for the
    same canonical name, the later one wins. Any fault while listing a
    source's names aborts the whole build.
    """

    resolve = as_resolver(resolver)
    names: Dict[str, None] = {}
    local_maps: List[Dict[str, str]] = []
    reverse_maps: List[Dict[str, str]] = []

    for index, source in enumerate(sources):
        try:
            local_sequence_names = list(source.sequence_names())
        except Exception as exc:
            handle_critical_error(
                f"Failed to read sequence names from {source_label(source)}: {exc}",
                SourceError,
                exc_info=exc,
                source_index=index,
                source_label=source_label(source),
            )

        chr_name_map: Dict[str, str] = {}
        reverse: Dict[str, str] = {}
        for seq in local_sequence_names:
            chrom = resolve(seq)
            names.setdefault(chrom, None)
            chr_name_map[chrom] = seq
            reverse[seq] = chrom
        local_maps.append(chr_name_map)
        reverse_maps.append(reverse)

    log_message(
        f"Discovered {len(names)} canonical sequence name(s) across {len(local_maps)} source(s)",
        level=logging.DEBUG,
    )
    return NameCatalogue(tuple(names), tuple(local_maps), tuple(reverse_maps))


__all__ = [
    "GenomeAliasResolver",
    "NameCatalogue",
    "as_resolver",
    "build_name_catalogue",
    "load_alias_file",
    "source_label",
]
