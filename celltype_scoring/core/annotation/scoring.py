"""Per-cell marker scoring for cell-type annotation.

This module computes a cell type x cell score matrix from a scaled
expression matrix (genes x cells) and prepared gene sets.

For a cell type t with positive genes P_t and negative genes N_t:

    score(t, cell) = sum_{g in P_t} w_g * x(g, cell) - sum_{g in N_t} x(g, cell)

where w_g = 1 / sqrt(number of cell types listing g as positive).

Supports parallel scoring via joblib for large cell type counts.
"""

from __future__ import annotations

import logging
import time
from typing import Dict, FrozenSet, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from joblib import Parallel, delayed

from ...exceptions import PreconditionError
from .gene_sets import GeneSets
from .marker_loading import canonicalize_marker


def build_gene_index(genes: Sequence[str]) -> Dict[str, int]:
    """Map canonical gene symbol -> row position (first occurrence wins)."""
    index: Dict[str, int] = {}
    for pos, gene in enumerate(genes):
        index.setdefault(canonicalize_marker(str(gene)), pos)
    return index


def _resolve_rows(
    genes: FrozenSet[str],
    gene_index: Dict[str, int],
) -> Tuple[List[str], List[int]]:
    names = sorted(g for g in genes if canonicalize_marker(g) in gene_index)
    return names, [gene_index[canonicalize_marker(g)] for g in names]


def _score_cell_type(
    values: np.ndarray,
    gene_index: Dict[str, int],
    positive: FrozenSet[str],
    negative: FrozenSet[str],
    marker_weights: Dict[str, float],
) -> Optional[np.ndarray]:
    """Score one cell type; None when no positive marker is measured."""
    pos_names, pos_rows = _resolve_rows(positive, gene_index)
    if not pos_rows:
        return None

    weights = np.array([marker_weights.get(g, 1.0) for g in pos_names], dtype=np.float64)
    scores = weights @ values[pos_rows, :]

    _, neg_rows = _resolve_rows(negative, gene_index)
    if neg_rows:
        scores = scores - values[neg_rows, :].sum(axis=0)
    return scores


def _score_batch(
    cell_types: List[str],
    values: np.ndarray,
    gene_index: Dict[str, int],
    gene_sets: GeneSets,
) -> Tuple[np.ndarray, List[str]]:
    """Score a batch of cell types (worker function for parallel execution).

    Returns:
        Tuple of (score rows, cell types without measured positive markers)
    """
    rows = np.zeros((len(cell_types), values.shape[1]), dtype=np.float64)
    empty: List[str] = []
    for i, cell_type in enumerate(cell_types):
        scores = _score_cell_type(
            values,
            gene_index,
            gene_sets.positive[cell_type],
            gene_sets.negative.get(cell_type, frozenset()),
            gene_sets.marker_weights,
        )
        if scores is None:
            empty.append(cell_type)
        else:
            rows[i, :] = scores
    return rows, empty


def _check_inputs(expression: pd.DataFrame, scaled: bool) -> np.ndarray:
    if not scaled:
        raise PreconditionError(
            "Marker scoring requires scaled (z-scored) expression; "
            "scale the data first or declare it as scaled"
        )
    if not isinstance(expression, pd.DataFrame):
        raise TypeError(
            f"Expression must be a genes x cells DataFrame, got {type(expression).__name__}"
        )
    return expression.to_numpy(dtype=np.float64)


def _warn_empty(empty: List[str], logger: logging.Logger) -> None:
    for cell_type in empty:
        logger.warning(
            "No positive markers of '%s' are present in the expression matrix; "
            "scores set to 0",
            cell_type,
        )


def score_cells(
    expression: pd.DataFrame,
    gene_sets: GeneSets,
    scaled: bool = True,
    logger: Optional[logging.Logger] = None,
) -> pd.DataFrame:
    """Score every cell against every prepared cell type.

    Args:
        expression: Scaled expression, index = genes, columns = cells
        gene_sets: Output of prepare_gene_sets
        scaled: Caller's declaration that expression is z-scored per gene
        logger: Optional logger instance

    Returns:
        DataFrame indexed by cell type (gene_sets order) with one column
        per cell (expression order)

    Raises:
        PreconditionError: If scaled is False
    """
    if logger is None:
        logger = logging.getLogger(__name__)

    values = _check_inputs(expression, scaled)
    gene_index = build_gene_index(expression.index)

    logger.info(
        "Scoring %d cells against %d cell types",
        values.shape[1],
        len(gene_sets),
    )

    rows, empty = _score_batch(gene_sets.cell_types, values, gene_index, gene_sets)
    _warn_empty(empty, logger)

    return pd.DataFrame(
        rows,
        index=pd.Index(gene_sets.cell_types, name="cell_type"),
        columns=expression.columns.copy(),
    )


def score_cells_parallel(
    expression: pd.DataFrame,
    gene_sets: GeneSets,
    scaled: bool = True,
    logger: Optional[logging.Logger] = None,
    n_workers: int = 1,
    batch_size: int = 8,
) -> pd.DataFrame:
    """Score cells with cell types split across parallel workers.

    Drop-in replacement for score_cells. Each worker scores a disjoint
    batch of cell types; batches are merged back in gene_sets order, so
    the result is identical to the sequential one.

    Args:
        expression: Scaled expression, index = genes, columns = cells
        gene_sets: Output of prepare_gene_sets
        scaled: Caller's declaration that expression is z-scored per gene
        logger: Optional logger instance
        n_workers: Number of parallel workers (1=sequential)
        batch_size: Cell types per worker batch

    Returns:
        Same DataFrame as score_cells
    """
    if logger is None:
        logger = logging.getLogger(__name__)

    if n_workers <= 1:
        return score_cells(expression, gene_sets, scaled=scaled, logger=logger)

    values = _check_inputs(expression, scaled)
    gene_index = build_gene_index(expression.index)

    cell_types = gene_sets.cell_types
    batch_size = max(batch_size, 1)
    batches = [
        cell_types[i:i + batch_size]
        for i in range(0, len(cell_types), batch_size)
    ]

    logger.info(
        "Scoring %d cells against %d cell types in %d batches with %d workers",
        values.shape[1],
        len(cell_types),
        len(batches),
        n_workers,
    )

    start_time = time.time()
    results = Parallel(n_jobs=n_workers, backend="loky")(
        delayed(_score_batch)(batch, values, gene_index, gene_sets)
        for batch in batches
    )
    logger.info("Parallel scoring completed in %.2f sec", time.time() - start_time)

    empty: List[str] = []
    blocks = []
    for rows, batch_empty in results:
        blocks.append(rows)
        empty.extend(batch_empty)
    _warn_empty(empty, logger)

    matrix = np.vstack(blocks) if blocks else np.zeros((0, values.shape[1]))
    return pd.DataFrame(
        matrix,
        index=pd.Index(cell_types, name="cell_type"),
        columns=expression.columns.copy(),
    )


def top_cell_types(score_matrix: pd.DataFrame) -> pd.Series:
    """Highest-scoring cell type per cell (ties -> alphabetically first)."""
    if score_matrix.empty:
        return pd.Series(dtype=object, index=score_matrix.columns)
    ordered = score_matrix.sort_index(kind="mergesort")
    return ordered.idxmax(axis=0).rename("top_cell_type")
