#!/usr/bin/env python3
"""
Scenario Maps CLI

Renders the municipality choropleth for a scenario/variable/period selection
and answers point queries against the same lookup store the map uses.

Usage:
    scenario-maps render --scenario A_climate_only --variable risk_prob
    scenario-maps render --scenario historical --variable vac_coverage --period C3_2009_2014
    scenario-maps lookup 1100015 --scenario B_vaccination_up
    scenario-maps search "porto velho"
    scenario-maps stats --scenario historical

    # Override config values without editing config.yaml:
    scenario-maps --set loading.discard_stale_results=false render ...

    # Verbose logging:
    scenario-maps --verbose render ...
"""

import asyncio
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import click
import pandas as pd
from loguru import logger

from analysis.app_state import AppState
from analysis.map_scenarios import build_scenario_map, save_scenario_map
from ops.config_loader import Config
from ops.logging_setup import setup_logging
from processing.identifiers import try_normalize


class ConfigOverride(click.ParamType):
    """KEY=VALUE pair with the value parsed to bool/int/float where it looks like one."""

    name = "config_override"

    def convert(self, value, param, ctx) -> Tuple[str, Any]:
        if "=" not in value:
            self.fail(f"Invalid format: {value}. Use KEY=VALUE", param, ctx)

        key, val = value.split("=", 1)

        if val.lower() in ("true", "false"):
            parsed_val: Any = val.lower() == "true"
        elif val.isdigit():
            parsed_val = int(val)
        elif "." in val and val.replace(".", "", 1).isdigit():
            parsed_val = float(val)
        else:
            parsed_val = val

        return key, parsed_val


def apply_override(data: Dict[str, Any], key: str, value: Any) -> None:
    """Set a dot-notation key in a nested config dict."""
    keys = key.split(".")
    current = data
    for k in keys[:-1]:
        if not isinstance(current.get(k), dict):
            current[k] = {}
        current = current[k]
    current[keys[-1]] = value
    logger.debug(f"Added override: {key} = {value}")


def selection_options(func):
    """Shared --scenario/--variable/--period options."""
    func = click.option("--period", help="Time period id (datasets keyed by period)")(func)
    func = click.option("--variable", help="Variable to display")(func)
    func = click.option("--scenario", help="Scenario or dataset id")(func)
    return func


def _selection(config: Config, **axes: Optional[str]) -> Dict[str, Optional[str]]:
    selection = {k: v for k, v in config.get_default_selection().items() if v is not None}
    selection.update({k: v for k, v in axes.items() if v is not None})
    return selection


@click.group()
@click.option("--config", "config_file", type=click.Path(exists=True), help="Path to config.yaml")
@click.option(
    "--set",
    "config_overrides",
    multiple=True,
    type=ConfigOverride(),
    help="Set config values using dot notation (e.g., search.limit=15)",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable DEBUG level logging")
@click.option("--trace", is_flag=True, help="Enable TRACE level logging for deep debugging")
@click.option("--log-file", type=str, help="Also log to specified file")
@click.pass_context
def cli(ctx, config_file, config_overrides, verbose, trace, log_file):
    """Yellow fever scenario maps: municipality choropleths and lookups."""
    setup_logging(verbose=verbose, enable_trace=trace, log_file=log_file)

    try:
        config = Config(config_file)
        for key, value in config_overrides:
            apply_override(config.data, key, value)
        if verbose or trace:
            config.print_config_summary()
    except (FileNotFoundError, ValueError) as e:
        logger.critical(f"Configuration error: {e}")
        logger.info("💡 Make sure config.yaml exists and is valid")
        ctx.exit(1)

    ctx.obj = config


@cli.command()
@selection_options
@click.option("--municipality", help="Municipality code to show in the title panel")
@click.option("--output", type=click.Path(), help="Output HTML path")
@click.pass_obj
def render(config: Config, scenario, variable, period, municipality, output):
    """Render the choropleth for a selection to an HTML file."""
    selection = _selection(config, scenario=scenario, variable=variable, period=period)
    if municipality:
        selection["municipality"] = try_normalize(municipality)

    async def _run():
        app = AppState(config)
        await app.load_municipalities()
        plan = await app.select(**selection)
        return app, plan

    app, plan = asyncio.run(_run())

    descriptor = app.variables.get(plan.selection.variable or "")
    if descriptor is None:
        logger.error(f"❌ Unknown variable '{plan.selection.variable}'")
        sys.exit(1)

    spec = app.datasets.get(plan.selection.scenario or "")
    m = build_scenario_map(
        app.municipalities,
        plan,
        descriptor,
        stats=app.snapshot.stats.get(descriptor.name),
        settings=app.settings,
        scenario_label=spec.label if spec else (plan.selection.scenario or ""),
    )

    output_path = (
        Path(output)
        if output
        else config.get_html_dir() / f"{plan.selection.scenario}_{descriptor.name}.html"
    )
    save_scenario_map(m, output_path)

    if plan.scenario_description:
        logger.info(f"📝 {plan.scenario_description}")
    if plan.panel is not None:
        logger.info(f"📍 {plan.panel.name} ({plan.panel.code}): {plan.panel.value_text}")


@cli.command()
@click.argument("code")
@selection_options
@click.pass_obj
def lookup(config: Config, code, scenario, variable, period):
    """Print the value of one municipality under a selection."""
    cod_mun = try_normalize(code)
    if cod_mun is None:
        logger.error(f"❌ '{code}' is not a municipality code")
        sys.exit(1)

    selection = _selection(config, scenario=scenario, variable=variable, period=period)

    async def _run():
        app = AppState(config)
        await app.load_municipalities()
        await app.select(**selection)
        return app.click(cod_mun)

    plan = asyncio.run(_run())
    panel = plan.panel
    click.echo(f"{panel.name}\t{panel.code}\t{panel.variable_label}: {panel.value_text}")
    if panel.period_label:
        click.echo(f"Period: {panel.period_label}")


@cli.command()
@click.argument("query")
@click.pass_obj
def search(config: Config, query):
    """Search municipalities by name."""
    app = AppState(config)
    asyncio.run(app.load_municipalities())

    matches = app.search(query)
    if not matches:
        click.echo("No matches")
        return
    for entry in matches:
        click.echo(entry.label)


@cli.command()
@click.option("--scenario", help="Scenario or dataset id")
@click.option("--period", help="Period to count municipalities with data for")
@click.pass_obj
def stats(config: Config, scenario, period):
    """Print coverage and per-variable distribution statistics of a dataset."""
    defaults = config.get_default_selection()
    dataset_id = scenario or defaults["scenario"]
    app = AppState(config)
    snapshot = asyncio.run(app.load_dataset(dataset_id))

    if not snapshot.stats:
        click.echo(f"No statistics for '{dataset_id}'")
        return

    store = snapshot.store
    click.echo(f"{dataset_id}: {len(store):,} municipalities, {len(store.to_frame()):,} rows")

    key = None
    periods = [k for k in store.secondary_keys if k is not None]
    if periods:
        key = period or defaults["period"]
        click.echo(f"Periods: {', '.join(periods)} (counting {key})")

    table = pd.DataFrame({name: s.as_dict() for name, s in snapshot.stats.items()}).T
    table.insert(0, "with_data", [len(store.values_for(name, key)) for name in table.index])
    click.echo(table.to_string(float_format=lambda v: f"{v:.4f}"))


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
