"""
Assumption differences between forecast scenarios.

Scenarios are compared as full snapshots with DeepDiff; identity fields that
always differ between scenarios (id, name, description, primary flag) are
excluded so only modeling changes remain.
"""

import re
from typing import Any, Dict, List

from deepdiff import DeepDiff

from ..models.money import format_percentage
from ..models.scenario import ForecastScenario

IDENTITY_PATHS = [
    "root['id']",
    "root['name']",
    "root['description']",
    "root['is_primary']",
]

_PATH_PART = re.compile(r"\['?([^\]']+)'?\]")


def readable_path(path: str) -> str:
    """Turn ``root['assumptions']['wage_growth']`` into ``assumptions.wage_growth``."""
    return ".".join(_PATH_PART.findall(path))


def _format_value(path: str, value: Any) -> str:
    if isinstance(value, float) and path.startswith("assumptions.") and abs(value) < 1:
        return format_percentage(value)
    return str(value)


def diff_scenarios(base: ForecastScenario, alternate: ForecastScenario) -> Dict[str, Any]:
    """
    Compare two scenarios using DeepDiff.

    Args:
        base: Base scenario
        alternate: Alternate scenario

    Returns:
        Dict with both ids, the raw DeepDiff and a ``has_changes`` flag
    """
    diff = DeepDiff(
        base.model_dump(mode="json"),
        alternate.model_dump(mode="json"),
        ignore_order=True,
        exclude_paths=IDENTITY_PATHS,
    )
    return {
        "base": base.id,
        "alternate": alternate.id,
        "changes": diff,
        "has_changes": bool(diff),
    }


def describe_scenario_changes(
    base: ForecastScenario, alternate: ForecastScenario
) -> List[str]:
    """
    Readable list of modeling differences between two scenarios.

    Returns:
        One line per changed, added or removed value, sorted by path
    """
    diff = diff_scenarios(base, alternate)["changes"]
    lines = []

    for key in ("values_changed", "type_changes"):
        for path, change in diff.get(key, {}).items():
            name = readable_path(path)
            old = _format_value(name, change["old_value"])
            new = _format_value(name, change["new_value"])
            lines.append(f"{name}: {old} → {new}")

    for path in diff.get("dictionary_item_added", []):
        lines.append(f"{readable_path(path)}: added")
    for path in diff.get("dictionary_item_removed", []):
        lines.append(f"{readable_path(path)}: removed")

    for path, value in diff.get("iterable_item_added", {}).items():
        label = value.get("name", value.get("id")) if isinstance(value, dict) else value
        lines.append(f"{readable_path(path)}: added {label}")
    for path, value in diff.get("iterable_item_removed", {}).items():
        label = value.get("name", value.get("id")) if isinstance(value, dict) else value
        lines.append(f"{readable_path(path)}: removed {label}")

    return sorted(lines)
