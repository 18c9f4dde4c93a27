"""Gene set preparation for marker scoring.

Selects one tissue from the marker database, resolves every marker symbol
against a naming convention, and pre-computes the marker specificity
weights consumed by the scoring step.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Sequence, Tuple

from ...exceptions import ConfigurationError
from .marker_loading import MarkerSet, SymbolTable, canonicalize_marker, filter_tissue


@dataclass(frozen=True)
class GeneSets:
    """Active positive/negative gene sets for one tissue.

    Attributes:
        tissue: Tissue the sets were prepared for
        positive: Cell type -> canonical positive marker symbols
        negative: Cell type -> canonical negative marker symbols
        marker_weights: Gene -> 1/sqrt(number of cell types listing it as positive)
        short_names: Cell type -> display name
        dropped_symbols: Symbols that could not be resolved
        dropped_cell_types: Cell types removed for lack of positive markers
    """
    tissue: str
    positive: Dict[str, FrozenSet[str]]
    negative: Dict[str, FrozenSet[str]]
    marker_weights: Dict[str, float]
    short_names: Dict[str, str] = field(default_factory=dict)
    dropped_symbols: Tuple[str, ...] = ()
    dropped_cell_types: Tuple[str, ...] = ()

    @property
    def cell_types(self) -> List[str]:
        return list(self.positive)

    def __len__(self) -> int:
        return len(self.positive)


def compute_marker_document_frequency(
    positive: Dict[str, FrozenSet[str]],
) -> Dict[str, int]:
    """Count how many cell types list each gene as a positive marker."""
    doc_freq: Dict[str, int] = {}
    for genes in positive.values():
        for gene in genes:
            doc_freq[gene] = doc_freq.get(gene, 0) + 1
    return doc_freq


def compute_marker_weights(doc_freq: Dict[str, int]) -> Dict[str, float]:
    """Specificity weight per gene: 1 / sqrt(document frequency)."""
    return {gene: 1.0 / math.sqrt(df) for gene, df in doc_freq.items() if df > 0}


def _normalize_symbols(
    symbols: Sequence[str],
    symbol_table: Optional[SymbolTable],
    dropped: Dict[str, None],
) -> FrozenSet[str]:
    resolved = set()
    for symbol in symbols:
        if symbol_table is None:
            resolved.add(canonicalize_marker(symbol))
            continue
        canon = symbol_table.canonicalize(symbol)
        if canon is None:
            dropped.setdefault(symbol, None)
        else:
            resolved.add(canon)
    return frozenset(resolved)


def prepare_gene_sets(
    database: Sequence[MarkerSet],
    tissue: str,
    symbol_table: Optional[SymbolTable] = None,
    logger: Optional[logging.Logger] = None,
) -> GeneSets:
    """Prepare the positive and negative gene sets of one tissue.

    Args:
        database: Marker sets as returned by load_marker_database
        tissue: Tissue category to select (case-insensitive)
        symbol_table: Known symbols and aliases. If None, symbols are only
            upper-cased and none are dropped.
        logger: Optional logger instance

    Returns:
        GeneSets with marker weights computed over the surviving cell types

    Raises:
        ConfigurationError: If the tissue is unknown, or normalization maps
            a gene into both the positive and negative set of one cell type
    """
    if logger is None:
        logger = logging.getLogger(__name__)

    selected = filter_tissue(database, tissue)

    positive: Dict[str, FrozenSet[str]] = {}
    negative: Dict[str, FrozenSet[str]] = {}
    short_names: Dict[str, str] = {}
    dropped: Dict[str, None] = {}
    dropped_types: List[str] = []

    for mset in selected:
        pos = _normalize_symbols(mset.positive_markers, symbol_table, dropped)
        neg = _normalize_symbols(mset.negative_markers, symbol_table, dropped)

        conflict = pos & neg
        if conflict:
            raise ConfigurationError(
                f"Cell type '{mset.cell_type}' resolves {sorted(conflict)} "
                "to both positive and negative markers"
            )

        if not pos:
            logger.warning(
                "Cell type '%s' has no resolvable positive markers; dropped",
                mset.cell_type,
            )
            dropped_types.append(mset.cell_type)
            continue

        positive[mset.cell_type] = pos
        negative[mset.cell_type] = neg
        short_names[mset.cell_type] = mset.display_name

    if dropped:
        logger.warning(
            "Dropped %d unresolvable marker symbols: %s",
            len(dropped),
            list(dropped),
        )

    marker_weights = compute_marker_weights(compute_marker_document_frequency(positive))

    logger.info(
        "Prepared %d gene sets for tissue '%s' (%d positive genes, %d dropped types)",
        len(positive),
        selected[0].tissue,
        len(marker_weights),
        len(dropped_types),
    )

    return GeneSets(
        tissue=selected[0].tissue,
        positive=positive,
        negative=negative,
        marker_weights=marker_weights,
        short_names=short_names,
        dropped_symbols=tuple(dropped),
        dropped_cell_types=tuple(dropped_types),
    )
