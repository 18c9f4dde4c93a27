"""Command-line interface for celltype-scoring.

Provides CLI commands for annotating clustered AnnData files against a
marker database and for ranking the database's tissues.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click

from celltype_scoring import __version__
from celltype_scoring.exceptions import ScoringError


def setup_logging(verbose: bool = False, debug: bool = False) -> logging.Logger:
    """Setup logging for CLI commands."""
    level = logging.DEBUG if debug else (logging.INFO if verbose else logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )
    return logging.getLogger("celltype_scoring")


def _fail(message: str) -> None:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


@click.group()
@click.version_option(version=__version__, prog_name="celltype-scoring")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.option("--debug", is_flag=True, help="Enable debug output")
@click.option("--log-file", type=click.Path(), help="Also write a timestamped log file")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, debug: bool, log_file: Optional[str]) -> None:
    """celltype-scoring: marker-based cell-type calls for scRNA-seq clusters.

    Examples:

        # Annotate clusters against one tissue of the marker database
        celltype-scoring annotate -i clustered.h5ad -m markers.csv -t "Immune system" -o out/

        # Rank tissues of the marker database against a dataset
        celltype-scoring detect-tissue -i clustered.h5ad -m markers.csv
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["debug"] = debug
    if log_file:
        from celltype_scoring.io.logging import configure_file_logging

        level = logging.DEBUG if debug else logging.INFO
        logger, actual_path = configure_file_logging(log_file, level=level)
        click.echo(f"Logging to: {actual_path}")
        ctx.obj["logger"] = logger
    else:
        ctx.obj["logger"] = setup_logging(verbose, debug)


def _build_params(
    config: Optional[str],
    cluster_key: Optional[str],
    layer: Optional[str],
    tissue: Optional[str],
    scale: bool,
    unscaled: bool,
    n_workers: Optional[int],
):
    from celltype_scoring.core.annotation import AnnotationParams

    params = AnnotationParams.from_yaml(Path(config)) if config else AnnotationParams()
    if cluster_key:
        params.cluster_key = cluster_key
    if layer:
        params.layer = layer
    if tissue:
        params.tissue = tissue
    if scale:
        params.scale_data = True
    if unscaled:
        params.data_is_scaled = False
    if n_workers is not None:
        params.n_workers = n_workers
    return params


@cli.command()
@click.option("--input", "-i", "input_path", required=True, type=click.Path(exists=True),
              help="Input AnnData file (.h5ad) with cluster assignments")
@click.option("--marker-db", "-m", required=True, type=click.Path(exists=True),
              help="Marker database table (CSV/TSV)")
@click.option("--out", "-o", "output_path", required=True, type=click.Path(),
              help="Output directory")
@click.option("--tissue", "-t", help="Tissue to annotate against (default: auto-detect)")
@click.option("--cluster-key", help="Cluster column in adata.obs")
@click.option("--layer", help="Expression layer to score (default: X)")
@click.option("--config", "-c", type=click.Path(exists=True),
              help="Annotation configuration file (YAML)")
@click.option("--symbol-table", type=click.Path(exists=True),
              help="Gene symbol table (CSV/TSV with symbol and aliases columns)")
@click.option("--scale", is_flag=True, help="Scale expression with scanpy before scoring")
@click.option("--unscaled", is_flag=True, help="Declare the expression layer as unscaled")
@click.option("--n-workers", type=int, help="Parallel workers for cell scoring")
@click.option("--save-h5ad/--no-save-h5ad", default=True, help="Write annotated.h5ad")
@click.pass_context
def annotate(
    ctx: click.Context,
    input_path: str,
    marker_db: str,
    output_path: str,
    tissue: Optional[str],
    cluster_key: Optional[str],
    layer: Optional[str],
    config: Optional[str],
    symbol_table: Optional[str],
    scale: bool,
    unscaled: bool,
    n_workers: Optional[int],
    save_h5ad: bool,
) -> None:
    """Assign a cell type to every cluster.

    Scores each cell against the marker database, sums scores per
    cluster and labels low-confidence clusters as Unknown.
    """
    logger = ctx.obj["logger"]
    logger.info("Running annotation on: %s", input_path)
    logger.info("Marker database: %s", marker_db)

    import scanpy as sc
    from celltype_scoring.core.annotation import AnnotationEngine, load_symbol_table

    out_dir = Path(output_path)
    out_dir.mkdir(parents=True, exist_ok=True)

    try:
        params = _build_params(config, cluster_key, layer, tissue, scale, unscaled, n_workers)
        symbols = load_symbol_table(symbol_table) if symbol_table else None
        engine = AnnotationEngine(marker_db, params=params, symbol_table=symbols, logger=logger)

        logger.info("Loading AnnData...")
        adata = sc.read_h5ad(input_path)
        logger.info("Loaded %d cells, %d genes", adata.n_obs, adata.n_vars)

        result = engine.run(adata, output_dir=out_dir)
    except (ScoringError, KeyError) as exc:
        _fail(str(exc))
        return

    if save_h5ad:
        output_file = out_dir / "annotated.h5ad"
        adata.write_h5ad(output_file)
        click.echo(f"Output saved to: {output_file}")

    click.echo(f"Tissue: {result.tissue}")
    for call in result.cluster_calls:
        click.echo(
            f"  cluster {call.cluster}: {call.assigned_type} "
            f"(score={call.score:.2f}, n_cells={call.cell_count})"
        )
    click.echo(f"Tables written to: {out_dir}")


@cli.command("detect-tissue")
@click.option("--input", "-i", "input_path", required=True, type=click.Path(exists=True),
              help="Input AnnData file (.h5ad) with cluster assignments")
@click.option("--marker-db", "-m", required=True, type=click.Path(exists=True),
              help="Marker database table (CSV/TSV)")
@click.option("--cluster-key", default="leiden", help="Cluster column in adata.obs")
@click.option("--layer", default="X", help="Expression layer to score")
@click.option("--symbol-table", type=click.Path(exists=True),
              help="Gene symbol table (CSV/TSV with symbol and aliases columns)")
@click.option("--scale", is_flag=True, help="Scale expression with scanpy before scoring")
@click.option("--unscaled", is_flag=True, help="Declare the expression layer as unscaled")
@click.option("--out", "-o", "output_file", type=click.Path(),
              help="Write the tissue ranking to this CSV")
@click.pass_context
def detect_tissue_cmd(
    ctx: click.Context,
    input_path: str,
    marker_db: str,
    cluster_key: str,
    layer: str,
    symbol_table: Optional[str],
    scale: bool,
    unscaled: bool,
    output_file: Optional[str],
) -> None:
    """Rank the tissues of the marker database against a dataset."""
    logger = ctx.obj["logger"]

    import scanpy as sc
    from celltype_scoring.core.annotation import (
        cluster_assignment,
        detect_tissue,
        expression_frame,
        load_marker_database_file,
        load_symbol_table,
        scale_expression,
    )
    from celltype_scoring.io.csv import write_dataframe

    try:
        database = load_marker_database_file(marker_db)
        symbols = load_symbol_table(symbol_table) if symbol_table else None

        adata = sc.read_h5ad(input_path)
        logger.info("Loaded %d cells, %d genes", adata.n_obs, adata.n_vars)

        expression = expression_frame(adata, layer)
        if scale:
            logger.info("Scaling a copy of layer '%s'", layer)
            expression = scale_expression(expression)

        ranking = detect_tissue(
            database,
            expression,
            cluster_assignment(adata, cluster_key),
            symbol_table=symbols,
            scaled=scale or not unscaled,
            logger=logger,
        )
    except (ScoringError, KeyError) as exc:
        _fail(str(exc))
        return

    for row in ranking.itertuples(index=False):
        click.echo(f"{row.tissue}\t{row.score:.4f}")

    if output_file:
        write_dataframe(ranking, output_file)
        click.echo(f"Ranking saved to: {output_file}")


def main() -> None:
    """Main entry point for CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
