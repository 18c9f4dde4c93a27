"""Tabular I/O for celltype-scoring.

Reads delimited text tables (marker databases, symbol tables) and writes
result tables.
"""

from __future__ import annotations

from pathlib import Path
from typing import Union

import pandas as pd

from ..exceptions import ConfigurationError

PathLike = Union[str, Path]

_SEPARATORS = {".csv": ",", ".tsv": "\t", ".txt": "\t"}


def ensure_output_dir(path: PathLike) -> Path:
    """Create the directory at path if it does not exist and return it."""
    directory = Path(path)
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def write_dataframe(df: pd.DataFrame, path: PathLike, *, index: bool = False) -> Path:
    """Write DataFrame to path ensuring the parent directory exists.

    Parameters
    ----------
    df : pd.DataFrame
        DataFrame to write.
    path : PathLike
        Output path.
    index : bool
        Whether to write row index (default: False).

    Returns
    -------
    Path
        The output path.
    """
    output_path = Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(output_path, index=index)
    return output_path


def read_table(path: PathLike) -> pd.DataFrame:
    """Read a delimited table as strings; the separator follows the suffix.

    Parameters
    ----------
    path : PathLike
        Path to a .csv, .tsv or .txt (tab separated) file.

    Returns
    -------
    pd.DataFrame
        Table with stripped column names.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ConfigurationError
        If the suffix is unsupported or the table is empty.
    """
    table_path = Path(path)
    if not table_path.exists():
        raise FileNotFoundError(f"Table not found: {table_path}")
    sep = _SEPARATORS.get(table_path.suffix.lower())
    if sep is None:
        raise ConfigurationError(
            f"Unsupported table format '{table_path.suffix}' for {table_path} "
            f"(expected one of {sorted(_SEPARATORS)})"
        )
    df = pd.read_csv(table_path, sep=sep, dtype=str)
    if df.empty:
        raise ConfigurationError(f"Table {table_path} is empty")
    df.columns = [str(c).strip() for c in df.columns]
    return df
