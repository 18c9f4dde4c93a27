"""Mock AnnData and marker table generators for testing.

Provides functions to create small datasets with known cluster identities
without requiring real data.
"""

from typing import Dict, List, Optional

import numpy as np
import pandas as pd

# Marker genes boosted in each mock cluster
CLUSTER_SIGNATURES: Dict[str, List[str]] = {
    "0": ["CD3E", "CD3D"],
    "1": ["CD19", "MS4A1"],
    "2": ["CD14", "LYZ"],
}

BACKGROUND_GENES = [f"Gene_{i}" for i in range(8)] + ["PTPRC"]


def zscore_genes(matrix: np.ndarray) -> np.ndarray:
    """Z-score a cells x genes matrix per gene (column)."""
    mean = matrix.mean(axis=0)
    std = matrix.std(axis=0)
    std[std == 0] = 1.0
    return (matrix - mean) / std


def create_mock_adata(
    n_cells_per_cluster: int = 40,
    signal: float = 3.0,
    noise: float = 0.1,
    seed: int = 42,
    scaled: bool = True,
    cluster_key: str = "leiden",
) -> "AnnData":
    """Create a mock AnnData with three clusters of known identity.

    Parameters
    ----------
    n_cells_per_cluster : int
        Cells in each of the three clusters
    signal : float
        Expression boost of a cluster's signature genes
    noise : float
        Standard deviation of the background noise
    seed : int
        Random seed for reproducibility
    scaled : bool
        Z-score X per gene; otherwise X holds non-negative raw-like values
    cluster_key : str
        Name of the cluster column in obs

    Returns
    -------
    AnnData
        Cluster "0" expresses T cell markers, "1" B cell markers and
        "2" monocyte markers.
    """
    import anndata as ad

    rng = np.random.default_rng(seed)

    genes = [g for sig in CLUSTER_SIGNATURES.values() for g in sig] + BACKGROUND_GENES
    clusters = sorted(CLUSTER_SIGNATURES)
    n_cells = n_cells_per_cluster * len(clusters)

    X = np.abs(rng.normal(0.0, noise, size=(n_cells, len(genes)))) + 0.5
    cluster_ids = np.repeat(clusters, n_cells_per_cluster)
    for cluster, signature in CLUSTER_SIGNATURES.items():
        rows = cluster_ids == cluster
        for gene in signature:
            X[rows, genes.index(gene)] += signal

    if scaled:
        X = zscore_genes(X)

    obs = pd.DataFrame({cluster_key: pd.Categorical(cluster_ids)})
    obs.index = pd.Index([f"cell_{i}" for i in range(n_cells)], name="cell_id")
    var = pd.DataFrame(index=pd.Index(genes, name="gene"))

    return ad.AnnData(X=X.astype(np.float64), obs=obs, var=var)


def create_marker_table(include_brain: bool = True) -> pd.DataFrame:
    """Create a marker database table in the documented column layout."""
    rows = [
        {
            "tissue": "Immune system",
            "cellType": "T cells",
            "positiveMarkers": "CD3E,CD3D",
            "negativeMarkers": "CD19",
            "shortName": "T",
        },
        {
            "tissue": "Immune system",
            "cellType": "B cells",
            "positiveMarkers": "CD19,MS4A1",
            "negativeMarkers": "CD3E",
            "shortName": "B",
        },
        {
            "tissue": "Immune system",
            "cellType": "Monocytes",
            "positiveMarkers": "CD14,LYZ",
            "negativeMarkers": np.nan,
            "shortName": np.nan,
        },
    ]
    if include_brain:
        rows += [
            {
                "tissue": "Brain",
                "cellType": "Neurons",
                "positiveMarkers": "SNAP25,SYT1",
                "negativeMarkers": np.nan,
                "shortName": np.nan,
            },
            {
                "tissue": "Brain",
                "cellType": "Astrocytes",
                "positiveMarkers": "GFAP,AQP4",
                "negativeMarkers": "SNAP25",
                "shortName": np.nan,
            },
        ]
    return pd.DataFrame(rows)


def create_expression_frame(
    data: Dict[str, List[float]],
    cells: Optional[List[str]] = None,
) -> pd.DataFrame:
    """Build a genes x cells DataFrame from gene -> values."""
    n_cells = len(next(iter(data.values())))
    cells = cells or [f"c{i + 1}" for i in range(n_cells)]
    return pd.DataFrame.from_dict(data, orient="index", columns=cells).astype(float)
