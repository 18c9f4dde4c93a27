"""Pytest configuration and shared fixtures for celltype-scoring tests."""

import sys
from pathlib import Path

import pytest
import numpy as np
import pandas as pd

# Add package to path
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from tests.fixtures import (
    create_expression_frame,
    create_marker_table,
    create_mock_adata,
)


# ============================================================================
# Marker Database Fixtures
# ============================================================================


@pytest.fixture
def marker_table() -> pd.DataFrame:
    """Marker table with an immune and a brain tissue."""
    return create_marker_table()


@pytest.fixture
def marker_database(marker_table):
    """MarkerSet tuple built from marker_table."""
    from celltype_scoring.core.annotation import load_marker_database

    return load_marker_database(marker_table)


@pytest.fixture
def toy_database():
    """Two-type database: TypeA (G1, G2) and TypeB (G3, negative G1)."""
    from celltype_scoring.core.annotation import MarkerSet

    return (
        MarkerSet("TypeA", "toy", ("G1", "G2")),
        MarkerSet("TypeB", "toy", ("G3",), ("G1",)),
    )


@pytest.fixture
def toy_expression() -> pd.DataFrame:
    """Scaled genes x cells matrix: c1/c2 express G1/G2, c3/c4 express G3."""
    return create_expression_frame({
        "G1": [2.0, 2.0, -2.0, -2.0],
        "G2": [2.0, 2.0, -2.0, -2.0],
        "G3": [-2.0, -2.0, 2.0, 2.0],
    })


@pytest.fixture
def toy_clusters() -> pd.Series:
    """c1, c2 -> cluster 0; c3, c4 -> cluster 1."""
    return pd.Series({"c1": 0, "c2": 0, "c3": 1, "c4": 1})


# ============================================================================
# AnnData Fixtures
# ============================================================================


@pytest.fixture
def mock_adata():
    """Scaled AnnData with T cell, B cell and monocyte clusters."""
    return create_mock_adata()


@pytest.fixture
def raw_adata():
    """Same clusters as mock_adata but with unscaled expression."""
    return create_mock_adata(scaled=False)


# ============================================================================
# File Fixtures
# ============================================================================


@pytest.fixture
def tmp_output_dir(tmp_path: Path) -> Path:
    """Create a temporary output directory for tests."""
    output_dir = tmp_path / "output"
    output_dir.mkdir(parents=True, exist_ok=True)
    return output_dir


@pytest.fixture
def marker_csv(tmp_path, marker_table) -> Path:
    """Marker table written to CSV."""
    path = tmp_path / "markers.csv"
    marker_table.to_csv(path, index=False)
    return path


@pytest.fixture
def symbol_csv(tmp_path) -> Path:
    """HGNC-style symbol table with aliases."""
    path = tmp_path / "symbols.csv"
    pd.DataFrame({
        "symbol": ["CD3E", "CD3D", "CD19", "MS4A1", "PTPRC"],
        "aliases": [np.nan, np.nan, np.nan, "CD20", "CD45|LCA"],
    }).to_csv(path, index=False)
    return path


@pytest.fixture
def sample_annotation_config(tmp_path) -> Path:
    """Create sample annotation configuration file."""
    import yaml

    config = {
        "annotation": {
            "cluster_key": "leiden",
            "label_col": "sctype",
            "tissue": "Immune system",
            "top_n_candidates": 2,
        },
    }

    path = tmp_path / "annotation.yaml"
    with open(path, "w") as f:
        yaml.dump(config, f)

    return path
