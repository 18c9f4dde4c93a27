"""Annotation module for marker-based cluster cell-type calls.

Provides marker database loading, gene set preparation, per-cell scoring
and cluster-level aggregation.
"""

from .marker_loading import (
    MarkerSet,
    SymbolTable,
    canonicalize_marker,
    filter_tissue,
    list_tissues,
    load_marker_database,
    load_marker_database_file,
    load_symbol_table,
    split_marker_list,
)
from .gene_sets import (
    GeneSets,
    compute_marker_document_frequency,
    compute_marker_weights,
    prepare_gene_sets,
)
from .scoring import score_cells, score_cells_parallel, top_cell_types
from .aggregation import (
    UNKNOWN_FRACTION,
    UNKNOWN_LABEL,
    ClusterCall,
    aggregate_clusters,
    calls_to_frame,
    cluster_score_table,
    rank_cluster_candidates,
    sort_cluster_ids,
)
from .tissue import detect_tissue
from .assignment import (
    annotate_obs,
    cluster_assignment,
    expression_frame,
    scale_expression,
)
from .config import AnnotationParams
from .engine import AnnotationEngine, AnnotationResult

__all__ = [
    # Engine
    "AnnotationEngine",
    "AnnotationParams",
    "AnnotationResult",
    # Marker loading
    "MarkerSet",
    "SymbolTable",
    "canonicalize_marker",
    "filter_tissue",
    "list_tissues",
    "load_marker_database",
    "load_marker_database_file",
    "load_symbol_table",
    "split_marker_list",
    # Gene sets
    "GeneSets",
    "compute_marker_document_frequency",
    "compute_marker_weights",
    "prepare_gene_sets",
    # Scoring
    "score_cells",
    "score_cells_parallel",
    "top_cell_types",
    # Aggregation
    "UNKNOWN_FRACTION",
    "UNKNOWN_LABEL",
    "ClusterCall",
    "aggregate_clusters",
    "calls_to_frame",
    "cluster_score_table",
    "rank_cluster_candidates",
    "sort_cluster_ids",
    # Tissue detection
    "detect_tissue",
    # AnnData
    "annotate_obs",
    "cluster_assignment",
    "expression_frame",
    "scale_expression",
]
