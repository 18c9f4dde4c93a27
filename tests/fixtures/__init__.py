"""Test fixtures for celltype-scoring.

Provides mock data generators and test utilities.
"""

from .mock_adata import (
    CLUSTER_SIGNATURES,
    create_expression_frame,
    create_marker_table,
    create_mock_adata,
    zscore_genes,
)

__all__ = [
    "CLUSTER_SIGNATURES",
    "create_expression_frame",
    "create_marker_table",
    "create_mock_adata",
    "zscore_genes",
]
