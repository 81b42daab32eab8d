import pytest
import yaml

from analysis.classification import RISK_PALETTE, VACCINATION_PALETTE, VariableKind
from ops.config_loader import PACKAGED_CONFIG, Config


def test_packaged_config_catalogue():
    config = Config(PACKAGED_CONFIG)

    datasets = config.get_datasets()
    variables = config.get_variables()

    assert len(datasets) == 8
    assert len(variables) == 10
    assert list(config.get_periods()) == [
        "C1_1994_1999",
        "C2_2000_2008",
        "C3_2009_2014",
        "C4_2015_2019",
        "C5_2020_2025",
    ]
    assert datasets["historical"].columns.secondary_key == ["cluster"]
    assert datasets["A_climate_only"].columns.secondary_key is None
    assert datasets["A_climate_only"].columns.values == {"risk_prob": ["risk_prob", "risk"]}
    assert variables["vac_coverage"].palette is VACCINATION_PALETTE
    assert variables["yfv_ocorreu"].kind is VariableKind.BINARY
    assert variables["Bio12-mean_z"].kind is VariableKind.Z_SCORE


def test_project_config_resolves_paths_under_the_root(config, project):
    datasets = config.get_datasets()

    assert datasets["A"].location == str(project / "data" / "scenarios" / "A.csv")
    assert datasets["A"].label == "A – Climate only"
    assert datasets["B"].label == "B"
    assert config.get_input_path("municipalities_geojson") == project / "data" / "municipios.geojson"
    assert config.get_html_dir() == project / "html"
    assert config.get_variables()["risk_prob"].palette is RISK_PALETTE


def test_urls_pass_through(config):
    assert config.resolve_location("https://example.org/A.csv") == "https://example.org/A.csv"


def test_defaults_fill_in_missing_sections(config):
    assert config.get_loading_setting("discard_stale_results") is True
    assert config.get_search_setting("limit") == 10
    assert config.get_visualization_settings()["fill_opacity"] == 0.9
    assert config.get("does.not.exist", "fallback") == "fallback"
    assert config.get_column_candidates("unlisted") == ["unlisted"]


def test_default_selection(config):
    assert config.get_default_selection() == {
        "scenario": "A",
        "variable": "risk_prob",
        "period": "C1_1994_1999",
        "municipality": None,
    }


def test_missing_input_key_raises(config):
    with pytest.raises(ValueError):
        config.get_input_path("nope")


def write_config(tmp_path, data):
    path = tmp_path / "bad.yaml"
    path.write_text(yaml.safe_dump(data))
    return Config(path, project_root_override=tmp_path)


def test_unknown_palette_is_rejected(tmp_path):
    config = write_config(tmp_path, {"variables": {"x": {"kind": "bounded_fraction", "palette": "nope"}}})

    with pytest.raises(ValueError, match="Unknown palette"):
        config.get_variables()


def test_unknown_kind_is_rejected(tmp_path):
    config = write_config(tmp_path, {"variables": {"x": {"kind": "ordinal"}}})

    with pytest.raises(ValueError):
        config.get_variables()


def test_dataset_without_file_is_rejected(tmp_path):
    config = write_config(tmp_path, {"datasets": {"A": {"variables": ["risk_prob"]}}})

    with pytest.raises(ValueError, match="no file"):
        config.get_datasets()


def test_config_file_from_environment(monkeypatch, config_path):
    monkeypatch.setenv("SCENARIO_MAPS_CONFIG", str(config_path))
    monkeypatch.setenv("SCENARIO_MAPS_ROOT", str(config_path.parent))

    config = Config()

    assert config.config_path == config_path.resolve()
    assert config.project_root == config_path.parent.resolve()


def test_missing_config_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        Config(tmp_path / "absent.yaml")
