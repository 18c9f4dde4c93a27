"""Tissue auto-detection.

Scores the dataset against every tissue of the marker database and ranks
tissues by how well their best cell types explain the clusters.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

import numpy as np
import pandas as pd

from ...exceptions import ConfigurationError
from .aggregation import ClusterAssignment, aggregate_clusters
from .gene_sets import prepare_gene_sets
from .marker_loading import MarkerSet, SymbolTable, list_tissues
from .scoring import score_cells_parallel


def detect_tissue(
    database: Sequence[MarkerSet],
    expression: pd.DataFrame,
    cluster_assignment: ClusterAssignment,
    symbol_table: Optional[SymbolTable] = None,
    scaled: bool = True,
    n_workers: int = 1,
    logger: Optional[logging.Logger] = None,
) -> pd.DataFrame:
    """Rank the tissues of a marker database against a dataset.

    A tissue's score is the mean, over clusters, of the winning summed
    score divided by the cluster size.

    Args:
        database: Marker sets (all tissues)
        expression: Scaled expression, index = genes, columns = cells
        cluster_assignment: Cell id -> cluster id
        symbol_table: Optional symbol table for marker normalization
        scaled: Caller's declaration that expression is z-scored
        n_workers: Workers for per-tissue scoring
        logger: Optional logger instance

    Returns:
        DataFrame with columns tissue, score, n_cell_types, n_confident,
        sorted by score descending (ties by tissue name)
    """
    if logger is None:
        logger = logging.getLogger(__name__)

    records = []
    for tissue in list_tissues(database):
        try:
            gene_sets = prepare_gene_sets(database, tissue, symbol_table, logger=logger)
        except ConfigurationError as exc:
            logger.warning("Skipping tissue '%s': %s", tissue, exc)
            continue
        if not len(gene_sets):
            logger.warning("Skipping tissue '%s': no usable cell types", tissue)
            continue

        scores = score_cells_parallel(
            expression, gene_sets, scaled=scaled, logger=logger, n_workers=n_workers
        )
        calls = aggregate_clusters(scores, cluster_assignment, logger=logger)
        per_cluster = [c.score / c.cell_count for c in calls if c.cell_count > 0]

        records.append({
            "tissue": tissue,
            "score": float(np.mean(per_cluster)) if per_cluster else 0.0,
            "n_cell_types": len(gene_sets),
            "n_confident": sum(1 for c in calls if c.is_confident),
        })

    if not records:
        raise ConfigurationError("No tissue in the marker database could be scored")

    result = pd.DataFrame.from_records(records)
    result = result.sort_values(
        ["score", "tissue"], ascending=[False, True], kind="mergesort"
    ).reset_index(drop=True)

    logger.info(
        "Tissue detection: best match '%s' (score %.3f)",
        result.loc[0, "tissue"],
        result.loc[0, "score"],
    )
    return result
