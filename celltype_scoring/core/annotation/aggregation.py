"""Cluster-level aggregation of per-cell scores.

Sums per-cell cell-type scores within each cluster, picks the best
cell type per cluster and demotes low-confidence clusters to "Unknown".
"""

from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass
from typing import Any, Hashable, Iterable, List, Mapping, Optional, Tuple, Union

import numpy as np
import pandas as pd

from ...exceptions import InputMismatchError

UNKNOWN_LABEL = "Unknown"

# Policy constant: a cluster keeps its best cell type only when the summed
# score reaches this fraction of the cluster's cell count.
UNKNOWN_FRACTION = 0.25

ClusterAssignment = Union[pd.Series, Mapping[Hashable, Hashable]]


@dataclass(frozen=True)
class ClusterCall:
    """Cell-type call for one cluster.

    Attributes:
        cluster: Cluster identifier
        assigned_type: Final label, UNKNOWN_LABEL when below the confidence threshold
        score: Summed score of the best cell type
        cell_count: Number of cells in the cluster
        top_type: Best cell type before the confidence rule (None if no types)
    """
    cluster: Any
    assigned_type: str
    score: float
    cell_count: int
    top_type: Optional[str] = None

    @property
    def is_confident(self) -> bool:
        return self.assigned_type != UNKNOWN_LABEL


_INTEGER_ID = re.compile(r"-?[0-9]+")


def _cluster_sort_key(cluster_id: Any) -> Tuple[int, Any]:
    text = str(cluster_id)
    if _INTEGER_ID.fullmatch(text):
        return (0, int(text))
    return (1, text)


def sort_cluster_ids(cluster_ids: Iterable[Any]) -> List[Any]:
    """Sort cluster ids ascending.

    Ids that all parse as integers are ordered numerically ("2" before
    "10"); otherwise ordering is by string value.
    """
    ids = list(cluster_ids)
    keys = [_cluster_sort_key(c) for c in ids]
    if all(k[0] == 0 for k in keys):
        return [c for _, c in sorted(zip(keys, ids), key=lambda kv: (kv[0][1], str(kv[1])))]
    return sorted(ids, key=str)


def _as_assignment(cluster_assignment: ClusterAssignment) -> pd.Series:
    if isinstance(cluster_assignment, pd.Series):
        series = cluster_assignment
    else:
        series = pd.Series(dict(cluster_assignment))
    # Drop categorical dtype so unused categories do not become clusters
    return pd.Series(
        np.asarray(series.to_numpy(), dtype=object),
        index=series.index,
        name="cluster",
    )


def _check_cells(score_matrix: pd.DataFrame, assignment: pd.Series) -> None:
    if assignment.index.has_duplicates:
        dupes = assignment.index[assignment.index.duplicated()].unique().tolist()
        raise InputMismatchError(
            f"Cluster assignment lists cells more than once: {dupes[:5]}"
        )
    missing = assignment.index.difference(score_matrix.columns)
    if len(missing) > 0:
        raise InputMismatchError(
            f"Cluster assignment references {len(missing)} cells absent from "
            f"the score matrix (e.g. {missing[:5].tolist()})"
        )
    if assignment.isna().any():
        raise InputMismatchError(
            f"Cluster assignment has {int(assignment.isna().sum())} cells without a cluster"
        )


def cluster_score_table(
    score_matrix: pd.DataFrame,
    cluster_assignment: ClusterAssignment,
) -> Tuple[pd.DataFrame, pd.Series]:
    """Sum per-cell scores within each cluster.

    Args:
        score_matrix: Cell type x cell scores (output of score_cells)
        cluster_assignment: Cell id -> cluster id

    Returns:
        Tuple of (clusters x cell types summed scores, cells per cluster),
        both ordered by ascending cluster id

    Raises:
        InputMismatchError: If the assignment references unknown cells
    """
    assignment = _as_assignment(cluster_assignment)
    _check_cells(score_matrix, assignment)

    per_cell = score_matrix.loc[:, assignment.index].T
    sums = per_cell.groupby(assignment.to_numpy(), sort=False).sum()
    counts = assignment.value_counts(sort=False)

    order = sort_cluster_ids(counts.index)
    sums = sums.reindex(order)
    sums.index.name = "cluster"
    sums.columns.name = "cell_type"
    counts = counts.loc[order].astype(int).rename("n_cells")
    counts.index.name = "cluster"
    return sums, counts


def _rank_row(row: pd.Series) -> List[Tuple[str, float]]:
    return sorted(
        ((str(t), float(s)) for t, s in row.items()),
        key=lambda kv: (-kv[1], kv[0]),
    )


def aggregate_clusters(
    score_matrix: pd.DataFrame,
    cluster_assignment: ClusterAssignment,
    logger: Optional[logging.Logger] = None,
) -> List[ClusterCall]:
    """Assign one cell type per cluster.

    For each cluster the per-cell scores are summed per cell type. The
    best type wins (ties broken by name). If its summed score is below
    cell_count * UNKNOWN_FRACTION the cluster is labelled UNKNOWN_LABEL;
    a score exactly at the threshold keeps the call.

    Args:
        score_matrix: Cell type x cell scores
        cluster_assignment: Cell id -> cluster id
        logger: Optional logger instance

    Returns:
        One ClusterCall per cluster, by ascending cluster id

    Raises:
        InputMismatchError: If the assignment references unknown cells
    """
    if logger is None:
        logger = logging.getLogger(__name__)

    sums, counts = cluster_score_table(score_matrix, cluster_assignment)

    calls: List[ClusterCall] = []
    for cluster in sums.index:
        n_cells = int(counts.loc[cluster])
        ranked = _rank_row(sums.loc[cluster])
        if ranked:
            top_type, top_score = ranked[0]
        else:
            top_type, top_score = None, 0.0

        assigned = top_type
        if top_type is None or top_score < n_cells * UNKNOWN_FRACTION:
            assigned = UNKNOWN_LABEL

        calls.append(
            ClusterCall(
                cluster=cluster,
                assigned_type=assigned,
                score=top_score,
                cell_count=n_cells,
                top_type=top_type,
            )
        )

    n_unknown = sum(1 for c in calls if not c.is_confident)
    logger.info(
        "Aggregated %d clusters (%d below confidence threshold)",
        len(calls),
        n_unknown,
    )
    return calls


def rank_cluster_candidates(
    score_matrix: pd.DataFrame,
    cluster_assignment: ClusterAssignment,
    top_n: int = 10,
) -> pd.DataFrame:
    """Top-N candidate cell types per cluster as a long table.

    Columns: cluster, rank (1-indexed), cell_type, score, n_cells.
    """
    sums, counts = cluster_score_table(score_matrix, cluster_assignment)

    records = []
    for cluster in sums.index:
        for rank, (cell_type, score) in enumerate(_rank_row(sums.loc[cluster])[:top_n], start=1):
            records.append({
                "cluster": cluster,
                "rank": rank,
                "cell_type": cell_type,
                "score": score,
                "n_cells": int(counts.loc[cluster]),
            })
    return pd.DataFrame.from_records(
        records, columns=["cluster", "rank", "cell_type", "score", "n_cells"]
    )


def calls_to_frame(calls: List[ClusterCall]) -> pd.DataFrame:
    """Convert ClusterCalls to a DataFrame (one row per cluster)."""
    columns = ["cluster", "assigned_type", "score", "cell_count", "top_type"]
    return pd.DataFrame([asdict(c) for c in calls], columns=columns)
