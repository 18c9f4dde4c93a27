"""I/O utilities for celltype-scoring.

Provides logging and delimited-table I/O.
"""

from .logging import configure_file_logging, write_run_summary
from .csv import ensure_output_dir, read_table, write_dataframe

__all__ = [
    # Logging
    "configure_file_logging",
    "write_run_summary",
    # Table I/O
    "ensure_output_dir",
    "read_table",
    "write_dataframe",
]
