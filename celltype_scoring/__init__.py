"""celltype-scoring: marker-based cell-type calls for clustered scRNA-seq data.

This package provides tools for:
- Loading a tabular marker database (positive and negative markers per
  cell type and tissue)
- Preparing tissue-specific gene sets with marker specificity weights
- Scoring every cell against every cell type from scaled expression
- Aggregating cell scores per cluster with a confidence threshold
- Detecting the best-matching tissue of the database

Example usage:
    >>> from celltype_scoring.core.annotation import AnnotationEngine
    >>>
    >>> engine = AnnotationEngine("markers.csv")
    >>> result = engine.run(adata, tissue="Immune system", cluster_key="leiden")
    >>> result.cluster_table
"""

__version__ = "0.1.0"

from .exceptions import (
    ConfigurationError,
    InputMismatchError,
    PreconditionError,
    ScoringError,
)

__all__ = [
    "__version__",
    "ConfigurationError",
    "InputMismatchError",
    "PreconditionError",
    "ScoringError",
]
