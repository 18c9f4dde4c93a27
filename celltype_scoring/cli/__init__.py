"""Command-line interface for celltype-scoring.

Example Usage
-------------
    # From command line:
    celltype-scoring --help
    celltype-scoring annotate --input clustered.h5ad --marker-db markers.csv --tissue "Immune system" --out out/
    celltype-scoring detect-tissue --input clustered.h5ad --marker-db markers.csv
"""

from .main import cli, main

__all__ = [
    "cli",
    "main",
]
