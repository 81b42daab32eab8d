import asyncio
from pathlib import Path

import pytest

from analysis.app_state import AppState
from analysis.classification import NO_DATA_COLOR
from processing.data_utils import fetch_text


def run(coro):
    return asyncio.run(coro)


def test_start_renders_the_default_selection(config, municipalities):
    plans = []
    app = AppState(config, municipalities, on_render=plans.append)

    plan = run(app.start(load_polygons=False))

    assert plans == [plan]
    assert app.snapshot.dataset_id == "A"
    assert plan.values == {"110001": 0.30, "110002": 0.05, "110003": None}
    assert plan.style_for("110003")["fillColor"] == NO_DATA_COLOR
    assert plan.scenario_description == "Scenario A"


def test_start_loads_polygons_from_config(config):
    app = AppState(config)

    plan = run(app.start())

    assert len(app.municipalities) == 3
    assert set(plan.values) == {"110001", "110002", "110003"}


def test_variable_change_does_not_reload(config, municipalities):
    fetched = []

    async def counting_fetch(location, timeout):
        fetched.append(location)
        return await fetch_text(location, timeout)

    app = AppState(config, municipalities, fetch=counting_fetch)

    async def scenario():
        await app.select(scenario="A", variable="risk_prob")
        await app.select(period="C2_2000_2008")
        await app.select(scenario="B")

    run(scenario())

    assert [Path(p).name for p in fetched] == ["A.csv", "B.csv"]
    assert app.plan.values["110003"] == 0.12


def test_fetch_failure_keeps_the_previous_snapshot(config, municipalities):
    app = AppState(config, municipalities)

    async def scenario():
        await app.select(scenario="A", variable="risk_prob")
        return await app.select(scenario="missing")

    plan = run(scenario())

    assert app.snapshot.dataset_id == "A"
    assert plan.selection.scenario == "missing"
    assert plan.values["110001"] == 0.30


def test_unreadable_text_keeps_the_previous_snapshot(config, municipalities, project):
    (project / "data" / "scenarios" / "B.csv").write_text('cod_mun,risk_prob\n110001,"0.5\n')
    app = AppState(config, municipalities)

    async def scenario():
        await app.select(scenario="A", variable="risk_prob")
        return await app.select(scenario="B")

    plan = run(scenario())

    assert app.snapshot.dataset_id == "A"
    assert plan.selection.scenario == "B"
    assert plan.values["110001"] == 0.30


def test_missing_key_column_publishes_an_empty_snapshot(config, municipalities):
    app = AppState(config, municipalities)

    async def scenario():
        await app.select(scenario="A", variable="risk_prob")
        return await app.select(scenario="broken")

    plan = run(scenario())

    assert app.snapshot.dataset_id == "broken"
    assert app.snapshot.is_empty
    assert set(plan.values.values()) == {None}


def test_unknown_dataset_renders_no_data(config, municipalities):
    app = AppState(config, municipalities)

    plan = run(app.select(scenario="nope", variable="risk_prob"))

    assert app.snapshot.is_empty
    assert set(plan.values.values()) == {None}


def test_historical_values_follow_the_period(config, municipalities):
    app = AppState(config, municipalities)

    async def scenario():
        first = await app.select(
            scenario="historical", variable="vac_coverage", period="C1_1994_1999"
        )
        second = await app.select(period="C2_2000_2008")
        return first, second

    first, second = run(scenario())

    assert first.values == {"110001": 0.95, "110002": None, "110003": 0.10}
    assert second.values == {"110001": 0.80, "110002": 0.40, "110003": None}
    assert first.style_for("110001")["fillColor"] == "#08306b"
    assert second.period_label == "2000–2008"


def test_scenario_values_ignore_the_period(config, municipalities):
    app = AppState(config, municipalities)

    plan = run(app.select(scenario="A", variable="risk_prob", period="C2_2000_2008"))

    assert plan.values["110001"] == 0.30


def test_click_updates_panel_without_reloading(config, municipalities):
    app = AppState(config, municipalities)
    run(app.select(scenario="A", variable="risk_prob"))

    plan = app.click("110001")

    assert plan.panel.name == "Alta Floresta D'Oeste"
    assert plan.panel.value_text == "0.3000"
    assert not plan.reload_dataset


def test_search_uses_configured_limits(config, municipalities):
    app = AppState(config, municipalities)

    assert [e.name for e in app.search("ARIQUE")] == ["Ariquemes"]
    assert app.search("a") == []


def gated_fetch(gates):
    async def fetch(location, timeout):
        await gates[Path(location).stem].wait()
        return Path(location).read_text()

    return fetch


async def overlapping_loads(app):
    """Request A, then B; let B finish first and A last."""
    gates = {"A": asyncio.Event(), "B": asyncio.Event()}
    app._fetch = gated_fetch(gates)

    load_a = asyncio.create_task(app.select(scenario="A", variable="risk_prob"))
    await asyncio.sleep(0)
    load_b = asyncio.create_task(app.select(scenario="B"))
    await asyncio.sleep(0)

    gates["B"].set()
    await load_b
    gates["A"].set()
    await load_a


def test_stale_load_is_discarded(config, municipalities):
    app = AppState(config, municipalities)

    run(overlapping_loads(app))

    assert app.snapshot.dataset_id == "B"
    assert app.snapshot.store.identifiers == ["110001", "110002", "110003"]
    assert app.plan.values == {"110001": 0.01, "110002": 0.20, "110003": 0.12}


def test_last_finished_load_wins_when_stale_results_are_kept(config, municipalities):
    config.data["loading"] = {"discard_stale_results": False}
    app = AppState(config, municipalities)

    run(overlapping_loads(app))

    # never a mix of rows from both datasets
    assert app.snapshot.dataset_id == "A"
    assert app.snapshot.store.identifiers == ["110001", "110002"]
    assert app.snapshot.stats["risk_prob"].max == pytest.approx(0.30)
    assert app.plan.values == {"110001": 0.30, "110002": 0.05, "110003": None}
