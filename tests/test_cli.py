"""Tests for the census-maps command line."""

import pandas as pd
import pytest

from census_choropleth.cli import build_parser, main


@pytest.fixture
def values_csv(tmp_path):
    path = tmp_path / "values.csv"
    pd.DataFrame({"code": list("ABCDEFGH"), "pct": [1, 2, 3, 4, 10, 11, 12, 13]}).to_csv(
        path, index=False
    )
    return path


class TestBreaksCommand:

    def test_quantile(self, values_csv, capsys):
        assert main(["breaks", str(values_csv), "--column", "pct", "-k", "2"]) == 0

        out = capsys.readouterr().out
        assert "Strategy: quantile" in out
        assert "Breaks: [1.0, 7.0, 13.0]" in out
        assert "Goodness of variance fit" in out

    def test_fixed_with_clip(self, values_csv, capsys):
        code = main([
            "breaks", str(values_csv), "--column", "pct",
            "--strategy", "fixed", "--breaks", "0", "5", "10", "--clip",
        ])

        assert code == 0
        assert "Breaks: [0.0, 5.0, 10.0]" in capsys.readouterr().out

    def test_fixed_out_of_range_fails(self, values_csv):
        code = main([
            "breaks", str(values_csv), "--column", "pct",
            "--strategy", "fixed", "--breaks", "0", "5", "10",
        ])
        assert code == 1

    def test_continuous(self, values_csv, capsys):
        assert main(["breaks", str(values_csv), "--column", "pct", "--strategy", "continuous"]) == 0

        out = capsys.readouterr().out
        assert "Breaks: [1.0, 13.0]" in out
        assert "Goodness" not in out

    def test_unknown_strategy(self, values_csv):
        assert main(["breaks", str(values_csv), "--column", "pct", "--strategy", "equal"]) == 1

    def test_unknown_column(self, values_csv):
        assert main(["breaks", str(values_csv), "--column", "share"]) == 1

    def test_missing_file(self, tmp_path):
        assert main(["breaks", str(tmp_path / "none.csv"), "--column", "pct"]) == 1


class TestRenderCommand:

    def test_render_from_yaml(self, data_dir, tmp_path, capsys):
        config_path = tmp_path / "maps.yaml"
        config_path.write_text(
            f"paths:\n"
            f"  data_dir: {data_dir}\n"
            f"map:\n"
            f"  class_count: 3\n"
            f"  figsize: [3, 3]\n"
            f"  dpi: 30\n"
            f"boundaries:\n"
            f"  path: boundaries/lsoa.geojson\n"
        )
        output = tmp_path / "maps"

        code = main([
            "render", "--config", str(config_path), "--output", str(output),
            "--step", "quantile", "--step", "pretty",
        ])

        assert code == 0
        assert sorted(p.name for p in output.iterdir()) == ["01_quantile.png", "03_pretty.png"]

    def test_unknown_step_rejected_by_parser(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["render", "--step", "bivariate"])
