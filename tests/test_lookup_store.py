import pytest

from processing.data_utils import ColumnSpec, Record, parse_table
from processing.lookup_store import DatasetSnapshot, LookupStore

from .conftest import HISTORICAL, SCENARIO_A

HISTORICAL_COLUMNS = ColumnSpec(
    values={
        "yfv_ocorreu": ["yfv_ocorreu"],
        "vac_coverage": ["vac_coverage"],
        "Bio1-mean_z": ["Bio1-mean_z"],
        "pop_density_last": ["pop_density_last"],
    },
    secondary_key=["cluster"],
)


@pytest.fixture
def historical_store():
    return LookupStore.from_records(parse_table(HISTORICAL, HISTORICAL_COLUMNS).records)


def test_scenario_lookup_by_identifier():
    records = parse_table(SCENARIO_A, ColumnSpec(values={"risk_prob": ["risk_prob"]})).records
    store = LookupStore.from_records(records)

    assert store.get("110001", "risk_prob") == 0.30
    assert store.get("110002", "risk_prob") == 0.05
    assert "110001" in store
    assert len(store) == 2


def test_every_kind_of_miss_is_none(historical_store):
    assert historical_store.get("999999", "vac_coverage", "C1_1994_1999") is None
    assert historical_store.get("110001", "vac_coverage", "C9_2099") is None
    assert historical_store.get("110001", "unknown_variable", "C1_1994_1999") is None
    assert historical_store.get("110002", "vac_coverage", "C1_1994_1999") is None
    assert historical_store.get("110001", "vac_coverage") is None


def test_zero_is_a_value_not_a_miss(historical_store):
    assert historical_store.get("110003", "Bio1-mean_z", "C1_1994_1999") == 0.0
    assert historical_store.get("110001", "yfv_ocorreu", "C2_2000_2008") == 0.0


def test_secondary_keys_select_distinct_rows(historical_store):
    assert historical_store.get("110001", "vac_coverage", "C1_1994_1999") == 0.95
    assert historical_store.get("110001", "vac_coverage", "C2_2000_2008") == 0.80
    assert historical_store.secondary_keys == ["C1_1994_1999", "C2_2000_2008"]


def test_last_write_wins_for_duplicate_keys():
    store = LookupStore.from_records(
        [
            Record("110001", None, {"risk_prob": 0.1}),
            Record("110002", None, {"risk_prob": 0.2}),
            Record("110001", None, {"risk_prob": 0.7}),
        ]
    )

    assert store.get("110001", "risk_prob") == 0.7
    assert store.identifiers == ["110001", "110002"]


def test_store_is_read_only():
    store = LookupStore.from_records([Record("110001", None, {"risk_prob": 0.1})])

    with pytest.raises(TypeError):
        store._data["110002"] = {}
    with pytest.raises(TypeError):
        store._data["110001"][None]["risk_prob"] = 0.9


def test_values_for_leaves_misses_out(historical_store):
    values = historical_store.values_for("vac_coverage", "C1_1994_1999")

    assert values == {"110001": 0.95, "110003": 0.10}


def test_to_frame_is_long_format(historical_store):
    frame = historical_store.to_frame()

    assert len(frame) == 5
    assert {"cod_mun", "secondary_key", "vac_coverage"} <= set(frame.columns)


def test_empty_store():
    store = LookupStore.empty()

    assert len(store) == 0
    assert store.get("110001", "risk_prob") is None
    assert list(store.to_frame().columns) == ["cod_mun", "secondary_key"]


def test_snapshot_pairs_store_with_statistics_from_the_same_parse():
    records = [
        Record("110001", None, {"risk_prob": 0.1}),
        Record("110001", None, {"risk_prob": 0.3}),
    ]
    snapshot = DatasetSnapshot.build("A", records, ["risk_prob"])

    assert snapshot.dataset_id == "A"
    assert snapshot.get("110001", "risk_prob") == 0.3
    assert snapshot.stats["risk_prob"].min == 0.1
    assert not snapshot.is_empty


def test_empty_snapshot():
    snapshot = DatasetSnapshot.empty("broken")

    assert snapshot.is_empty
    assert snapshot.stats == {}
    assert snapshot.get("110001", "risk_prob") is None
