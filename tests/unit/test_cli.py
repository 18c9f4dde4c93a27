"""Unit tests for the command-line interface."""

import pytest
import pandas as pd
from click.testing import CliRunner

from celltype_scoring.cli import cli


@pytest.fixture
def h5ad_path(tmp_path, mock_adata):
    """Mock AnnData written to disk."""
    path = tmp_path / "clustered.h5ad"
    mock_adata.write_h5ad(path)
    return path


@pytest.fixture
def runner():
    return CliRunner()


class TestAnnotateCommand:
    """Tests for the annotate command."""

    def test_annotate_with_tissue(self, runner, h5ad_path, marker_csv, tmp_path):
        out_dir = tmp_path / "out"
        result = runner.invoke(cli, [
            "annotate",
            "-i", str(h5ad_path),
            "-m", str(marker_csv),
            "-t", "Immune system",
            "-o", str(out_dir),
        ])
        assert result.exit_code == 0, result.output
        assert "T cells" in result.output
        assert "Monocytes" in result.output
        assert (out_dir / "annotated.h5ad").exists()
        assert (out_dir / "cluster_calls.csv").exists()

    def test_annotate_auto_tissue_no_h5ad(self, runner, h5ad_path, marker_csv, tmp_path):
        out_dir = tmp_path / "out"
        result = runner.invoke(cli, [
            "annotate",
            "-i", str(h5ad_path),
            "-m", str(marker_csv),
            "-o", str(out_dir),
            "--no-save-h5ad",
        ])
        assert result.exit_code == 0, result.output
        assert "Tissue: Immune system" in result.output
        assert not (out_dir / "annotated.h5ad").exists()
        assert (out_dir / "tissue_ranking.csv").exists()

    def test_annotate_with_config(
        self, runner, h5ad_path, marker_csv, sample_annotation_config, tmp_path
    ):
        out_dir = tmp_path / "out"
        result = runner.invoke(cli, [
            "annotate",
            "-i", str(h5ad_path),
            "-m", str(marker_csv),
            "-c", str(sample_annotation_config),
            "-o", str(out_dir),
            "--no-save-h5ad",
        ])
        assert result.exit_code == 0, result.output
        candidates = pd.read_csv(out_dir / "cluster_candidates.csv")
        assert candidates["rank"].max() == 2

    def test_unknown_tissue_fails(self, runner, h5ad_path, marker_csv, tmp_path):
        result = runner.invoke(cli, [
            "annotate",
            "-i", str(h5ad_path),
            "-m", str(marker_csv),
            "-t", "Liver",
            "-o", str(tmp_path / "out"),
        ])
        assert result.exit_code == 1
        assert "Error" in result.output

    def test_unscaled_fails(self, runner, h5ad_path, marker_csv, tmp_path):
        result = runner.invoke(cli, [
            "annotate",
            "-i", str(h5ad_path),
            "-m", str(marker_csv),
            "-t", "Immune system",
            "--unscaled",
            "-o", str(tmp_path / "out"),
        ])
        assert result.exit_code == 1
        assert "scaled" in result.output

    def test_missing_cluster_key_fails(self, runner, h5ad_path, marker_csv, tmp_path):
        result = runner.invoke(cli, [
            "annotate",
            "-i", str(h5ad_path),
            "-m", str(marker_csv),
            "--cluster-key", "louvain",
            "-o", str(tmp_path / "out"),
        ])
        assert result.exit_code == 1
        assert "louvain" in result.output


class TestDetectTissueCommand:
    """Tests for the detect-tissue command."""

    def test_ranking_printed(self, runner, h5ad_path, marker_csv, tmp_path):
        out_file = tmp_path / "ranking.csv"
        result = runner.invoke(cli, [
            "detect-tissue",
            "-i", str(h5ad_path),
            "-m", str(marker_csv),
            "-o", str(out_file),
        ])
        assert result.exit_code == 0, result.output
        lines = [l for l in result.output.splitlines() if "\t" in l]
        assert lines[0].startswith("Immune system")
        assert pd.read_csv(out_file)["tissue"].tolist() == ["Immune system", "Brain"]

    def test_scale_raw_input(self, runner, tmp_path, raw_adata, marker_csv):
        raw_path = tmp_path / "raw.h5ad"
        raw_adata.write_h5ad(raw_path)
        result = runner.invoke(cli, [
            "detect-tissue",
            "-i", str(raw_path),
            "-m", str(marker_csv),
            "--unscaled",
            "--scale",
        ])
        assert result.exit_code == 0, result.output
        lines = [l for l in result.output.splitlines() if "\t" in l]
        assert lines[0].startswith("Immune system")

    def test_unscaled_without_scale_fails(self, runner, h5ad_path, marker_csv):
        result = runner.invoke(cli, [
            "detect-tissue",
            "-i", str(h5ad_path),
            "-m", str(marker_csv),
            "--unscaled",
        ])
        assert result.exit_code == 1
        assert "scaled" in result.output


class TestVersion:
    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output
