"""Annotation engine for marker-based cluster cell-type calls.

This module provides the AnnotationEngine class that orchestrates the
annotation pipeline on a clustered AnnData: tissue selection, gene set
preparation, per-cell scoring, cluster aggregation and cell assignment.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import pandas as pd
from anndata import AnnData

from ...io.csv import ensure_output_dir, write_dataframe
from ...io.logging import write_run_summary
from .aggregation import (
    UNKNOWN_FRACTION,
    UNKNOWN_LABEL,
    ClusterCall,
    aggregate_clusters,
    calls_to_frame,
    cluster_score_table,
    rank_cluster_candidates,
)
from .assignment import (
    annotate_obs,
    cluster_assignment,
    expression_frame,
    scale_expression,
)
from .config import AnnotationParams
from .gene_sets import GeneSets, prepare_gene_sets
from .marker_loading import (
    MarkerSet,
    SymbolTable,
    load_marker_database,
    load_marker_database_file,
)
from .scoring import score_cells_parallel
from .tissue import detect_tissue


@dataclass
class AnnotationResult:
    """Result from the annotation pipeline.

    Attributes:
        adata: AnnData with cell-type columns added to obs
        tissue: Tissue the clusters were annotated against
        gene_sets: Prepared gene sets used for scoring
        cell_scores: Cell type x cell score matrix
        cluster_scores: Cluster x cell type summed scores
        cluster_calls: One ClusterCall per cluster, ascending cluster id
        candidates: Top candidate cell types per cluster
        tissue_ranking: Tissue detection table (None if tissue was given)
    """

    adata: AnnData
    tissue: str
    gene_sets: GeneSets
    cell_scores: pd.DataFrame
    cluster_scores: pd.DataFrame
    cluster_calls: List[ClusterCall]
    candidates: pd.DataFrame
    tissue_ranking: Optional[pd.DataFrame] = None

    @property
    def cluster_table(self) -> pd.DataFrame:
        return calls_to_frame(self.cluster_calls)


class AnnotationEngine:
    """Annotation engine for pre-clustered AnnData.

    Example:
        >>> engine = AnnotationEngine(Path("markers.csv"))
        >>> result = engine.run(adata, tissue="Immune system", output_dir=Path("out/"))
        >>> result.cluster_table
    """

    def __init__(
        self,
        marker_database: Union[Sequence[MarkerSet], pd.DataFrame, Path, str],
        params: Optional[AnnotationParams] = None,
        symbol_table: Optional[SymbolTable] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize annotation engine.

        Args:
            marker_database: MarkerSet sequence, marker DataFrame, or path to CSV/TSV
            params: Annotation parameters (uses defaults if None)
            symbol_table: Optional symbol table for marker normalization
            logger: Logger instance
        """
        self.params = params or AnnotationParams()
        self.symbol_table = symbol_table
        self.logger = logger or logging.getLogger(__name__)

        if isinstance(marker_database, (str, Path)):
            self._marker_path: Optional[Path] = Path(marker_database)
            self.database = load_marker_database_file(marker_database)
        elif isinstance(marker_database, pd.DataFrame):
            self._marker_path = None
            self.database = load_marker_database(marker_database)
        else:
            self._marker_path = None
            self.database = tuple(marker_database)

    def _expression(self, adata: AnnData) -> Tuple[pd.DataFrame, bool]:
        """Return (genes x cells expression, scaled flag)."""
        expression = expression_frame(adata, self.params.layer)
        if not self.params.scale_data:
            return expression, self.params.data_is_scaled

        self.logger.info(
            "Scaling a copy of layer '%s' (max_value=%s)",
            self.params.layer,
            self.params.scale_max_value,
        )
        return scale_expression(expression, self.params.scale_max_value), True

    def run(
        self,
        adata: AnnData,
        tissue: Optional[str] = None,
        cluster_key: Optional[str] = None,
        output_dir: Optional[Path] = None,
    ) -> AnnotationResult:
        """Run the full annotation pipeline.

        Args:
            adata: AnnData with cluster_key in obs
            tissue: Tissue to annotate against (overrides params; None with
                no params.tissue triggers auto-detection)
            cluster_key: Column name for cluster IDs (overrides params)
            output_dir: Where to write CSVs (None = don't write)

        Returns:
            AnnotationResult; adata.obs gains the label columns
        """
        cluster_key = cluster_key or self.params.cluster_key
        tissue = tissue or self.params.tissue

        self.logger.info("=" * 70)
        self.logger.info("ANNOTATION ENGINE")
        self.logger.info("=" * 70)
        if self._marker_path:
            self.logger.info("Marker database: %s", self._marker_path)
        self.logger.info("Cluster key: %s", cluster_key)
        self.logger.info("Layer: %s", self.params.layer)

        errors = self.validate_input(adata, cluster_key)
        if errors:
            raise KeyError("; ".join(errors))

        expression, scaled = self._expression(adata)
        clusters = cluster_assignment(adata, cluster_key)

        # 1. Tissue
        tissue_ranking = None
        if tissue is None:
            self.logger.info("Phase 1: Detecting tissue...")
            tissue_ranking = detect_tissue(
                self.database,
                expression,
                clusters,
                symbol_table=self.symbol_table,
                scaled=scaled,
                n_workers=self.params.n_workers,
                logger=self.logger,
            )
            tissue = str(tissue_ranking.loc[0, "tissue"])
        self.logger.info("Tissue: %s", tissue)

        # 2. Gene sets
        self.logger.info("Phase 2: Preparing gene sets...")
        gene_sets = prepare_gene_sets(
            self.database, tissue, self.symbol_table, logger=self.logger
        )

        # 3. Per-cell scores
        self.logger.info("Phase 3: Scoring cells...")
        cell_scores = score_cells_parallel(
            expression,
            gene_sets,
            scaled=scaled,
            logger=self.logger,
            n_workers=self.params.n_workers,
            batch_size=self.params.batch_size,
        )

        # 4. Cluster calls
        self.logger.info("Phase 4: Aggregating clusters...")
        calls = aggregate_clusters(cell_scores, clusters, logger=self.logger)
        cluster_scores, _ = cluster_score_table(cell_scores, clusters)
        candidates = rank_cluster_candidates(
            cell_scores, clusters, top_n=self.params.top_n_candidates
        )

        # 5. Map to cells
        self.logger.info("Phase 5: Mapping calls to cells...")
        annotate_obs(
            adata,
            calls,
            cluster_key=cluster_key,
            label_col=self.params.label_col,
            logger=self.logger,
        )

        result = AnnotationResult(
            adata=adata,
            tissue=tissue,
            gene_sets=gene_sets,
            cell_scores=cell_scores,
            cluster_scores=cluster_scores,
            cluster_calls=calls,
            candidates=candidates,
            tissue_ranking=tissue_ranking,
        )

        if output_dir:
            self.export(result, Path(output_dir))

        self.logger.info(
            "Annotation complete: %d clusters, %d labelled %s",
            len(calls),
            sum(1 for c in calls if not c.is_confident),
            UNKNOWN_LABEL,
        )
        return result

    def export(self, result: AnnotationResult, output_dir: Path) -> None:
        """Write result tables and a YAML run summary to output_dir."""
        output_dir = ensure_output_dir(output_dir)

        write_dataframe(result.cell_scores, output_dir / "cell_type_scores.csv", index=True)
        write_dataframe(result.cluster_scores, output_dir / "cluster_scores.csv", index=True)
        write_dataframe(result.cluster_table, output_dir / "cluster_calls.csv")
        write_dataframe(result.candidates, output_dir / "cluster_candidates.csv")
        if result.tissue_ranking is not None:
            write_dataframe(result.tissue_ranking, output_dir / "tissue_ranking.csv")
        self.logger.info("Wrote result tables to %s", output_dir)

        write_run_summary(
            output_dir / "annotation_summary.yaml",
            {
                "tissue": result.tissue,
                "params": self.params.to_dict(),
                "unknown_fraction": UNKNOWN_FRACTION,
                "n_cells": int(result.cell_scores.shape[1]),
                "n_cell_types": len(result.gene_sets),
                "dropped_symbols": list(result.gene_sets.dropped_symbols),
                "dropped_cell_types": list(result.gene_sets.dropped_cell_types),
                "clusters": {
                    str(c.cluster): {
                        "assigned_type": c.assigned_type,
                        "score": round(c.score, 4),
                        "n_cells": c.cell_count,
                    }
                    for c in result.cluster_calls
                },
            },
            logger=self.logger,
        )

    def validate_input(self, adata: AnnData, cluster_key: str) -> List[str]:
        """Validate input AnnData has required data.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        if cluster_key not in adata.obs.columns:
            errors.append(f"Missing cluster column: {cluster_key}")

        if self.params.layer != "X" and self.params.layer not in adata.layers:
            errors.append(f"Missing layer: {self.params.layer}")

        return errors
