"""Core computational modules for celltype-scoring.

This package contains the annotation engine:
- annotation: Marker database loading, gene set preparation, per-cell
  scoring, cluster aggregation and tissue detection
"""
