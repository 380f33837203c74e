from pathlib import Path

from propertylocator.settings import DEFAULT_STRAIGHT_LINE_RATIO, load_settings, straight_line_ratio

BASE = """project:
  default_area: demo
  catalogs_dir: data/catalogs
  processed_dir: data/processed
  cache_dir: cache
  logs_dir: logs
  reports_dir: reports
estimation:
  straight_line_ratio: 0.8
geocoding:
  base_url: https://nominatim.example.com
  query_suffix: ""
  country_codes: ""
"""

AREA = """geocoding:
  query_suffix: 東京都江戸川区
  country_codes: jp
"""


def _write_config(tmp_path: Path) -> Path:
    config_dir = tmp_path / "config"
    (config_dir / "areas").mkdir(parents=True)
    (config_dir / "default.yaml").write_text(BASE, encoding="utf-8")
    (config_dir / "areas" / "demo.yaml").write_text(AREA, encoding="utf-8")
    return config_dir / "default.yaml"


def test_default_area_is_merged(tmp_path: Path) -> None:
    settings = load_settings(_write_config(tmp_path))

    assert settings["_meta"]["area"] == "demo"
    assert settings["geocoding"]["query_suffix"] == "東京都江戸川区"
    assert settings["geocoding"]["country_codes"] == "jp"
    # Keys the area file does not mention survive the merge.
    assert settings["geocoding"]["base_url"] == "https://nominatim.example.com"
    assert straight_line_ratio(settings) == 0.8


def test_paths_are_created_under_project_root(tmp_path: Path) -> None:
    settings = load_settings(_write_config(tmp_path))

    assert Path(settings["paths"]["root"]) == tmp_path.resolve()
    for key in ["catalogs_dir", "processed_dir", "cache_dir", "logs_dir", "reports_dir"]:
        assert Path(settings["paths"][key]).is_dir()


def test_unknown_area_has_no_overrides(tmp_path: Path) -> None:
    settings = load_settings(_write_config(tmp_path), area="elsewhere")

    assert settings["_meta"]["area"] == "elsewhere"
    assert settings["geocoding"]["query_suffix"] == ""


def test_straight_line_ratio_falls_back_to_default() -> None:
    assert straight_line_ratio({}) == DEFAULT_STRAIGHT_LINE_RATIO
    assert straight_line_ratio({"estimation": {"straight_line_ratio": "abc"}}) == DEFAULT_STRAIGHT_LINE_RATIO
