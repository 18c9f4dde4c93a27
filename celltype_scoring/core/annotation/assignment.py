"""AnnData adapters for the scoring engine.

Extracts a genes x cells expression frame from AnnData and maps
cluster-level calls back onto individual cells.
"""

from __future__ import annotations

import logging
from typing import List, Optional

import numpy as np
import pandas as pd
from anndata import AnnData
import scanpy as sc
from scipy import sparse

from ...exceptions import InputMismatchError
from .aggregation import UNKNOWN_LABEL, ClusterCall


def expression_frame(adata: AnnData, layer: str = "X") -> pd.DataFrame:
    """Return expression as a dense genes x cells DataFrame.

    Args:
        adata: AnnData (cells x genes)
        layer: "X" or a key of adata.layers

    Raises:
        KeyError: If the layer does not exist
    """
    if layer == "X":
        matrix = adata.X
    elif layer in adata.layers:
        matrix = adata.layers[layer]
    else:
        raise KeyError(
            f"Layer '{layer}' not found. Available layers: {list(adata.layers.keys())}"
        )
    matrix = matrix.toarray() if sparse.issparse(matrix) else np.asarray(matrix)

    return pd.DataFrame(
        matrix.T,
        index=adata.var_names.astype(str),
        columns=adata.obs_names.astype(str),
    )


def scale_expression(
    expression: pd.DataFrame,
    max_value: Optional[float] = 10.0,
) -> pd.DataFrame:
    """Z-score a genes x cells frame per gene with scanpy.pp.scale.

    Works on a scratch AnnData; the input frame is left untouched.
    """
    scratch = AnnData(
        X=expression.to_numpy(dtype=np.float64).T.copy(),
        obs=pd.DataFrame(index=expression.columns),
        var=pd.DataFrame(index=expression.index),
    )
    sc.pp.scale(scratch, max_value=max_value)
    return pd.DataFrame(
        np.asarray(scratch.X).T,
        index=expression.index,
        columns=expression.columns,
    )


def cluster_assignment(adata: AnnData, cluster_key: str) -> pd.Series:
    """Return adata.obs[cluster_key] indexed by string cell ids.

    Raises:
        KeyError: If cluster_key is not an obs column
        InputMismatchError: If any cell has no cluster
    """
    if cluster_key not in adata.obs:
        raise KeyError(f"Missing cluster key '{cluster_key}' in AnnData.obs")
    clusters = adata.obs[cluster_key]
    n_missing = int(clusters.isna().sum())
    if n_missing:
        raise InputMismatchError(
            f"{n_missing} cells have no cluster in adata.obs['{cluster_key}']"
        )
    return pd.Series(
        clusters.astype(str).to_numpy(),
        index=adata.obs_names.astype(str),
        name=cluster_key,
    )


def annotate_obs(
    adata: AnnData,
    calls: List[ClusterCall],
    cluster_key: str,
    label_col: str,
    logger: Optional[logging.Logger] = None,
) -> None:
    """Map cluster-level calls to cells in adata.obs.

    Creates new columns in adata.obs:
    - {label_col}: Assigned cell type label
    - {label_col}_score: Summed cluster score of the winning type
    - {label_col}_confident: Whether the cluster passed the confidence rule

    Args:
        adata: AnnData object to modify in place
        calls: Output of aggregate_clusters
        cluster_key: Column in adata.obs with cluster assignments
        label_col: Name for the output label column
        logger: Optional logger instance
    """
    if logger is None:
        logger = logging.getLogger(__name__)

    clusters = adata.obs[cluster_key].astype(str)
    label_map = {str(c.cluster): c.assigned_type for c in calls}
    score_map = {str(c.cluster): c.score for c in calls}
    confident_map = {str(c.cluster): c.is_confident for c in calls}

    adata.obs[label_col] = pd.Categorical(clusters.map(label_map).fillna(UNKNOWN_LABEL))
    adata.obs[f"{label_col}_score"] = clusters.map(score_map).fillna(0.0).astype(float)
    adata.obs[f"{label_col}_confident"] = clusters.map(confident_map).eq(True)

    logger.info(
        "Annotated %d cells with %d unique labels",
        adata.n_obs,
        adata.obs[label_col].nunique(),
    )
