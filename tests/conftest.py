import json
import sys
from pathlib import Path

import pytest
import yaml
from loguru import logger
from shapely.geometry import box, mapping

from ops.config_loader import Config
from processing.municipalities import municipalities_from_features

SCENARIO_A = "cod_mun,risk_prob\r\n110001,0.30\r\n0110002,0.05\r\n"
SCENARIO_B = "CD_MUN,risk\n110001,0.01\n110002,0.20\n110003,0.12\n"
HISTORICAL = (
    "cod_mun,cluster,yfv_ocorreu,vac_coverage,Bio1-mean_z,pop_density_last\n"
    "110001,C1_1994_1999,1,0.95,2.1,10\n"
    "110001,C2_2000_2008,0,0.80,-0.5,20\n"
    "110002,C1_1994_1999,0,,1.0,30\n"
    "110002,C2_2000_2008,,0.40,-2.5,40\n"
    "110003,C1_1994_1999,0,0.10,0,abc\n"
)


def polygon_feature(name, code, x, prop="CD_MUN"):
    return {
        "type": "Feature",
        "properties": {"NM_MUN": name, prop: code},
        "geometry": mapping(box(x, -10.0, x + 1.0, -9.0)),
    }


FEATURES = [
    polygon_feature("Alta Floresta D'Oeste", "1100015", -62.0),
    polygon_feature("Ariquemes", "1100023", -61.0),
    polygon_feature("Cabixi", "1100031", -60.0),
]


@pytest.fixture(autouse=True)
def reset_logger():
    yield
    logger.remove()
    logger.add(sys.stderr, level="INFO")


@pytest.fixture
def municipalities():
    return municipalities_from_features(FEATURES)


@pytest.fixture
def project(tmp_path):
    """A project directory with config.yaml, scenario files and polygons."""
    data = tmp_path / "data"
    (data / "scenarios").mkdir(parents=True)
    (data / "scenarios" / "A.csv").write_text(SCENARIO_A)
    (data / "scenarios" / "B.csv").write_text(SCENARIO_B)
    (data / "scenarios" / "broken.csv").write_text("code,risk_prob\n110001,0.5\n")
    (data / "historical.csv").write_text(HISTORICAL)
    (data / "municipios.geojson").write_text(
        json.dumps({"type": "FeatureCollection", "features": FEATURES})
    )

    config_data = {
        "project_name": "Test scenarios",
        "input_files": {"municipalities_geojson": "data/municipios.geojson"},
        "columns": {
            "identifier": ["cod_mun", "CD_MUN"],
            "secondary_key": ["cluster"],
            "risk_prob": ["risk_prob", "risk"],
        },
        "variables": {
            "risk_prob": {"label": "Predicted risk", "kind": "bounded_fraction", "palette": "risk"},
            "yfv_ocorreu": {"kind": "binary"},
            "vac_coverage": {"kind": "bounded_fraction", "palette": "vaccination"},
            "Bio1-mean_z": {"kind": "z_score"},
            "pop_density_last": {"kind": "continuous"},
        },
        "periods": {"C1_1994_1999": "1994–1999", "C2_2000_2008": "2000–2008"},
        "datasets": {
            "A": {
                "label": "A – Climate only",
                "file": "data/scenarios/A.csv",
                "description": "Scenario A",
                "variables": ["risk_prob"],
            },
            "B": {"file": "data/scenarios/B.csv", "variables": ["risk_prob"]},
            "broken": {"file": "data/scenarios/broken.csv", "variables": ["risk_prob"]},
            "missing": {"file": "data/scenarios/missing.csv", "variables": ["risk_prob"]},
            "historical": {
                "file": "data/historical.csv",
                "secondary_key": True,
                "variables": ["yfv_ocorreu", "vac_coverage", "Bio1-mean_z", "pop_density_last"],
            },
        },
        "defaults": {"scenario": "A", "variable": "risk_prob", "period": "C1_1994_1999"},
        "directories": {"html": "html"},
    }
    (tmp_path / "config.yaml").write_text(yaml.safe_dump(config_data, allow_unicode=True))
    return tmp_path


@pytest.fixture
def config(project) -> Config:
    return Config(project / "config.yaml", project_root_override=project)


@pytest.fixture
def config_path(project) -> Path:
    return project / "config.yaml"
