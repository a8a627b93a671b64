"""
JSON Schema generator for forecast and debt scenarios.

Scenarios are authored as JSON by other systems; these schemas describe the
accepted documents, including the tagged revenue, expense and debt unions.
"""

import json
from pathlib import Path
from typing import Any, Dict

from pydantic import TypeAdapter

from .debt_scenarios import DebtScenario
from .scenario import ForecastScenario

SCHEMA_DRAFT = "http://json-schema.org/draft-07/schema#"


def generate_forecast_scenario_schema() -> Dict[str, Any]:
    """Generate JSON schema for the ForecastScenario model."""
    return ForecastScenario.model_json_schema()


def generate_debt_scenario_schema() -> Dict[str, Any]:
    """Generate JSON schema for the DebtScenario union."""
    return TypeAdapter(DebtScenario).json_schema()


def save_schemas(output_dir: Path) -> Dict[str, Path]:
    """
    Save both scenario schemas to a directory.

    Args:
        output_dir: Target directory (created if missing)

    Returns:
        Mapping of schema name to the written file
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    documents = {
        "forecast_scenario": (
            generate_forecast_scenario_schema(),
            "Fund Forecast Scenario Schema v0.1",
            "Schema for fund forecast scenarios including revenue models, expense "
            "models, economic assumptions, minimum balance policy and debt instruments",
        ),
        "debt_scenario": (
            generate_debt_scenario_schema(),
            "Debt Scenario Schema v0.1",
            "Schema for new issuance, early payoff, refunding and combined debt scenarios",
        ),
    }

    written = {}
    for name, (schema, title, description) in documents.items():
        schema.update(
            {
                "$schema": SCHEMA_DRAFT,
                "$id": f"https://fiscal-forecast.org/schema/{name}_v0_1.json",
                "title": title,
                "description": description,
            }
        )
        path = output_dir / f"{name}_v0_1.json"
        with open(path, "w") as f:
            json.dump(schema, f, indent=2)
        written[name] = path

    return written


if __name__ == "__main__":
    schema_dir = Path(__file__).parent.parent.parent / "schema"
    for path in save_schemas(schema_dir).values():
        print(f"Schema saved to {path}")
