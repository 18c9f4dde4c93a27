"""Marker database loading and gene symbol resolution.

This module turns a tabular marker database (one row per cell type) into
immutable MarkerSet records, and provides the SymbolTable used to map
marker symbols onto a canonical naming convention.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd

from ...exceptions import ConfigurationError
from ...io.csv import read_table

logger = logging.getLogger(__name__)

# Canonical column names and the aliases accepted for each of them.
# The aliases are the column names of the ScType marker database.
COLUMN_ALIASES: Dict[str, Tuple[str, ...]] = {
    "cellType": ("cellType", "cellName", "cell_type"),
    "tissue": ("tissue", "tissueType", "tissue_type"),
    "positiveMarkers": ("positiveMarkers", "geneSymbolmore1", "positive_markers"),
    "negativeMarkers": ("negativeMarkers", "geneSymbolmore2", "negative_markers"),
    "shortName": ("shortName", "short_name"),
}

REQUIRED_COLUMNS = ("cellType", "tissue", "positiveMarkers")

_DELIMITER = re.compile(r"[,;]")


@dataclass(frozen=True)
class MarkerSet:
    """Positive and negative marker genes defining one cell type.

    Attributes:
        cell_type: Cell type name, unique within its tissue
        tissue: Tissue category the entry belongs to
        positive_markers: Genes whose expression is evidence for the type
        negative_markers: Genes whose expression is evidence against it
        short_name: Optional display name
    """
    cell_type: str
    tissue: str
    positive_markers: Tuple[str, ...]
    negative_markers: Tuple[str, ...] = ()
    short_name: Optional[str] = None

    def __post_init__(self) -> None:
        conflict = set(self.positive_markers) & set(self.negative_markers)
        if conflict:
            raise ConfigurationError(
                f"Cell type '{self.cell_type}' ({self.tissue}) lists "
                f"{sorted(conflict)} as both positive and negative markers"
            )

    @property
    def display_name(self) -> str:
        return self.short_name or self.cell_type


def canonicalize_marker(marker: str) -> str:
    """Normalize a gene symbol for case-insensitive lookup."""
    return marker.strip().upper()


def split_marker_list(value: object) -> Tuple[str, ...]:
    """Split a delimited marker cell into a tuple of unique symbols.

    Empty cells, NaN and the literal strings "NA"/"None" yield an empty tuple.
    Order of first appearance is kept.
    """
    if value is None:
        return ()
    if isinstance(value, float) and pd.isna(value):
        return ()
    text = str(value).strip()
    if not text or text.upper() in {"NA", "NAN", "NONE"}:
        return ()

    seen: Dict[str, None] = {}
    for token in _DELIMITER.split(text):
        token = token.strip()
        if token and token.upper() not in {"NA", "NONE"}:
            seen.setdefault(token, None)
    return tuple(seen)


class SymbolTable:
    """Known gene symbols plus alias mappings.

    Lookup is case-insensitive. A symbol resolves to itself when it is a
    known symbol, to its approved symbol when it is a known alias, and to
    None otherwise.

    Example:
        >>> table = SymbolTable(["CD3E", "PTPRC"], aliases={"CD45": "PTPRC"})
        >>> table.canonicalize("cd45")
        'PTPRC'
    """

    def __init__(
        self,
        symbols: Iterable[str],
        aliases: Optional[Mapping[str, str]] = None,
    ):
        self._symbols: Dict[str, str] = {}
        for symbol in symbols:
            symbol = str(symbol).strip()
            if symbol:
                self._symbols.setdefault(canonicalize_marker(symbol), symbol)

        self._aliases: Dict[str, str] = {}
        for alias, target in (aliases or {}).items():
            resolved = self._symbols.get(canonicalize_marker(str(target)))
            if resolved is None:
                logger.debug("Alias '%s' points to unknown symbol '%s'", alias, target)
                continue
            self._aliases.setdefault(canonicalize_marker(str(alias)), resolved)

    @classmethod
    def from_var_names(
        cls,
        var_names: Sequence[str],
        aliases: Optional[Mapping[str, str]] = None,
    ) -> "SymbolTable":
        """Build a table from the gene names of an expression matrix."""
        return cls([str(v) for v in var_names], aliases=aliases)

    @classmethod
    def from_table(
        cls,
        table: pd.DataFrame,
        symbol_col: str = "symbol",
        alias_col: Optional[str] = "aliases",
    ) -> "SymbolTable":
        """Build a table from an HGNC-style DataFrame.

        Aliases in alias_col are separated by "|" or ",". The alias column
        is optional.
        """
        if symbol_col not in table.columns:
            raise ConfigurationError(f"Symbol table missing column '{symbol_col}'")

        symbols = [str(s).strip() for s in table[symbol_col].dropna()]
        aliases: Dict[str, str] = {}
        if alias_col and alias_col in table.columns:
            for symbol, raw in zip(table[symbol_col], table[alias_col]):
                if pd.isna(symbol) or pd.isna(raw):
                    continue
                for alias in str(raw).replace("|", ",").split(","):
                    alias = alias.strip()
                    if alias:
                        aliases.setdefault(alias, str(symbol).strip())
        return cls(symbols, aliases=aliases)

    def __len__(self) -> int:
        return len(self._symbols)

    def __contains__(self, symbol: object) -> bool:
        return self.canonicalize(str(symbol)) is not None

    def canonicalize(self, symbol: str) -> Optional[str]:
        key = canonicalize_marker(symbol)
        if key in self._symbols:
            return self._symbols[key]
        return self._aliases.get(key)


def _resolve_columns(table: pd.DataFrame) -> Dict[str, str]:
    """Map canonical column names to the columns present in table."""
    resolved: Dict[str, str] = {}
    for canonical, aliases in COLUMN_ALIASES.items():
        for alias in aliases:
            if alias in table.columns:
                resolved[canonical] = alias
                break

    missing = [col for col in REQUIRED_COLUMNS if col not in resolved]
    if missing:
        raise ConfigurationError(
            f"Marker table missing columns: {missing} "
            f"(found: {list(table.columns)})"
        )
    return resolved


def load_marker_database(table: pd.DataFrame) -> Tuple[MarkerSet, ...]:
    """Build MarkerSet records from an in-memory marker table.

    Args:
        table: DataFrame with one row per cell type and the columns
            cellType, tissue, positiveMarkers, and optionally
            negativeMarkers and shortName (ScType column names accepted)

    Returns:
        Tuple of MarkerSet in table order

    Raises:
        ConfigurationError: If required columns are missing, a row has no
            cell type or tissue, or a (tissue, cell type) pair repeats
    """
    columns = _resolve_columns(table)
    neg_col = columns.get("negativeMarkers")
    short_col = columns.get("shortName")

    result: List[MarkerSet] = []
    seen = set()
    for row_idx, row in enumerate(table.to_dict(orient="records")):
        cell_type = row.get(columns["cellType"])
        tissue = row.get(columns["tissue"])
        if pd.isna(cell_type) or pd.isna(tissue) or not str(cell_type).strip():
            raise ConfigurationError(
                f"Marker table row {row_idx} has no cell type or tissue"
            )
        cell_type = str(cell_type).strip()
        tissue = str(tissue).strip()

        key = (tissue.lower(), cell_type)
        if key in seen:
            raise ConfigurationError(
                f"Duplicate cell type '{cell_type}' for tissue '{tissue}'"
            )
        seen.add(key)

        short_name = row.get(short_col) if short_col else None
        if short_name is not None and pd.isna(short_name):
            short_name = None

        result.append(
            MarkerSet(
                cell_type=cell_type,
                tissue=tissue,
                positive_markers=split_marker_list(row.get(columns["positiveMarkers"])),
                negative_markers=split_marker_list(row.get(neg_col)) if neg_col else (),
                short_name=str(short_name).strip() if short_name is not None else None,
            )
        )

    logger.info(
        "Loaded %d marker sets across %d tissues",
        len(result),
        len({ms.tissue.lower() for ms in result}),
    )
    return tuple(result)


def load_marker_database_file(path: Union[str, Path]) -> Tuple[MarkerSet, ...]:
    """Read a marker database CSV/TSV and build its MarkerSet records.

    Raises:
        FileNotFoundError: If the file does not exist
        ConfigurationError: If the table is malformed
    """
    table = read_table(path)
    logger.info("Reading marker database %s (%d rows)", path, len(table))
    return load_marker_database(table)


def load_symbol_table(
    path: Union[str, Path],
    symbol_col: str = "symbol",
    alias_col: Optional[str] = "aliases",
) -> SymbolTable:
    """Read a gene symbol table (e.g. an HGNC export) from CSV/TSV."""
    symbol_table = SymbolTable.from_table(read_table(path), symbol_col, alias_col)
    logger.info("Read symbol table %s (%d symbols)", path, len(symbol_table))
    return symbol_table


def list_tissues(database: Sequence[MarkerSet]) -> List[str]:
    """Return the distinct tissue labels of a database, sorted."""
    by_key: Dict[str, str] = {}
    for mset in database:
        by_key.setdefault(mset.tissue.lower(), mset.tissue)
    return [by_key[k] for k in sorted(by_key)]


def filter_tissue(database: Sequence[MarkerSet], tissue: str) -> List[MarkerSet]:
    """Return the marker sets of one tissue (case-insensitive match).

    Raises:
        ConfigurationError: If no marker set belongs to the tissue
    """
    wanted = tissue.strip().lower()
    selected = [ms for ms in database if ms.tissue.lower() == wanted]
    if not selected:
        raise ConfigurationError(
            f"Tissue '{tissue}' not found in marker database "
            f"(available: {list_tissues(database)})"
        )
    return selected
