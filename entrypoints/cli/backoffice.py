from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import pandas as pd
import typer
from loguru import logger

from inmoflow.adapters.config import config
from inmoflow.adapters.memory_repo import Repositories
from inmoflow.adapters.seed import generate_properties
from inmoflow.domain.pricing import MIN_PRICE
from inmoflow.services.forecast import ForecastService
from inmoflow.services.pricing_analysis import ClosingCosts, calc_net_owner_proceeds
from inmoflow.services.pricing_rules import validate_net_waterfall, validate_scenario, validate_scenario_consistency

app = typer.Typer(help="Inmoflow back-office tooling (pricing checks, forecasts, demo data).")


def _print_json(data: object) -> None:
    typer.echo(json.dumps(data, indent=2, ensure_ascii=False, default=str))


@app.command("validate-scenario")
def validate_scenario_cmd(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Scenario JSON file"),
    consistency: bool = typer.Option(False, "--consistency", help="Also run the softer consistency review."),
) -> None:
    """
    Validate a pricing scenario JSON file. Exits with code 1 when invalid.
    """
    data = json.loads(path.read_text(encoding="utf-8"))
    result = validate_scenario(data)
    if consistency:
        result.merge(validate_scenario_consistency(data))

    _print_json(result.to_dict())
    if not result.ok:
        logger.warning("Scenario rejected", path=str(path), fields=sorted(result.errors))
        raise typer.Exit(code=1)
    logger.info("Scenario valid", path=str(path), warnings=len(result.warnings))


@app.command()
def waterfall(
    price: float = typer.Argument(..., help="Sale price"),
    mortgage: Optional[float] = typer.Option(None, help="Outstanding mortgage (default: configured share of price)"),
    agency_fee: Optional[float] = typer.Option(None, help="Agency fee amount"),
    other: float = typer.Option(0.0, help="Other seller costs"),
) -> None:
    """
    Print the seller's net-proceeds waterfall for a sale price.
    """
    if price < MIN_PRICE:
        _print_json({"ok": False, "errors": {"price": f"El precio debe ser al menos {MIN_PRICE:.0f}"}})
        raise typer.Exit(code=1)

    result = calc_net_owner_proceeds(price, ClosingCosts(agency_fee=agency_fee, mortgage=mortgage, other=other))
    check = validate_net_waterfall(result)
    _print_json({"waterfall": result.to_json_dict(), "validation": check.to_dict()})
    logger.info("Waterfall computed", price=price, net_owner=result.net_owner)
    if not check.ok:
        raise typer.Exit(code=1)


@app.command("forecast-summary")
def forecast_summary(
    period: Optional[str] = typer.Option(None, "--period", help="Period id (default: all periods)"),
) -> None:
    """
    Summarise the demo forecast book, optionally for one period.
    """
    summary = ForecastService(Repositories.seeded()).summary(period)
    _print_json(summary.to_json_dict())
    logger.info("Forecast summary", period=summary.period_name, net=summary.net_amount)


@app.command("export-forecasts")
def export_forecasts(
    out: Path = typer.Argument(..., help="Output CSV path"),
) -> None:
    """
    Export the demo forecast items to CSV.
    """
    csv = ForecastService(Repositories.seeded()).export_csv()
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(csv, encoding="utf-8")
    logger.info("Forecasts exported", path=str(out))


@app.command("seed-properties")
def seed_properties(
    out: Path = typer.Argument(..., help="Output CSV or JSON path"),
    count: int = typer.Option(config.SEED_PROPERTIES, help="Number of listings"),
    seed: int = typer.Option(config.SEED_RANDOM, help="Random seed"),
) -> None:
    """
    Write a deterministic set of demo listings (CSV, or JSON when OUT ends in .json).
    """
    props = generate_properties(count, seed=seed)
    out.parent.mkdir(parents=True, exist_ok=True)
    if out.suffix.lower() == ".json":
        out.write_text(
            json.dumps([p.to_json_dict() for p in props], indent=2, ensure_ascii=False), encoding="utf-8"
        )
    else:
        df = pd.json_normalize([p.to_json_dict() for p in props])
        df.to_csv(out, index=False)
    logger.info("Properties seeded", path=str(out), count=len(props), seed=seed)


if __name__ == "__main__":
    app()
