"""Configuration for the annotation engine.

All parameters can be loaded from YAML, either at the top level or under
an ``annotation:`` section.
"""

from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from ...exceptions import ConfigurationError


@dataclass
class AnnotationParams:
    """Parameters for the annotation pipeline.

    Attributes
    ----------
    cluster_key : str
        Column in adata.obs with cluster assignments
    label_col : str
        Output column name for cluster cell type labels
    layer : str
        Expression source: "X" or the name of a layer in adata.layers
    data_is_scaled : bool
        Caller's declaration that the chosen layer is z-scored per gene
    scale_data : bool
        Scale a copy of the expression with scanpy before scoring
    scale_max_value : float, optional
        Clip value passed to scanpy.pp.scale
    tissue : str, optional
        Tissue to annotate against; None triggers auto-detection
    top_n_candidates : int
        Candidates per cluster in the candidate table
    n_workers : int
        Parallel workers for per-cell scoring (1=sequential)
    batch_size : int
        Cell types per worker batch
    """

    cluster_key: str = "leiden"
    label_col: str = "cell_type_auto"
    layer: str = "X"
    data_is_scaled: bool = True
    scale_data: bool = False
    scale_max_value: Optional[float] = 10.0
    tissue: Optional[str] = None
    top_n_candidates: int = 10
    n_workers: int = 1
    batch_size: int = 8

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnnotationParams":
        """Create parameters from a dict, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(f"Unknown annotation parameters: {unknown}")
        return cls(**data)

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "AnnotationParams":
        """Load parameters from a YAML file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            data = yaml.safe_load(f) or {}

        # Handle nested annotation section
        if "annotation" in data:
            data = data["annotation"] or {}

        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)
