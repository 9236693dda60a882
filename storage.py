"""JSON persistence for planner and converter state."""

import json
import logging
import os
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from calc import InvalidInput, UNIT_NAMES

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path(__file__).parent / "data"


def get_data_dir() -> Path:
    return Path(os.environ.get("CHEF_TOOLS_DATA_DIR") or DEFAULT_DATA_DIR)


# -----------------------------------------------------------------------------
# Defaults
# -----------------------------------------------------------------------------
def default_menu() -> List[Dict[str, str]]:
    return [
        {"name": "Salad", "description": "Fresh garden salad"},
        {"name": "Spaghetti", "description": "Classic pasta with tomato sauce"},
    ]


def default_ingredient_lines() -> List[Dict[str, Any]]:
    return [
        {"dish": "Salad", "ingredient": "Lettuce", "amount": 0.5, "unit": "Pounds"},
        {"dish": "Salad", "ingredient": "Tomato", "amount": 0.3, "unit": "Pounds"},
        {"dish": "Salad", "ingredient": "Olive Oil", "amount": 0.05, "unit": "Liters"},
        {"dish": "Spaghetti", "ingredient": "Spaghetti Pasta", "amount": 100, "unit": "Grams"},
        {"dish": "Spaghetti", "ingredient": "Tomato Sauce", "amount": 0.5, "unit": "Liters"},
    ]


def default_catalog() -> Dict[str, Dict[str, float]]:
    return {
        "Lettuce": {"Pounds": 2.0},
        "Tomato": {"Pounds": 1.5},
        "Olive Oil": {"Liters": 10.0},
        "Spaghetti Pasta": {"Grams": 0.01},
        "Tomato Sauce": {"Liters": 3.0},
    }


DEFAULT_SEATS = 4

# grams per cup
DEFAULT_DENSITIES = {
    "All-Purpose Flour": 120, "Bread Flour": 125, "Cake Flour": 110, "Granulated Sugar": 200,
    "Brown Sugar (packed)": 220, "Powdered Sugar": 120, "Kosher Salt": 145, "Table Salt": 292,
    "Baking Soda": 230, "Baking Powder": 192, "Instant Yeast": 150, "Rice (uncooked)": 185,
    "Quinoa (uncooked)": 170, "Rolled Oats": 90, "Cornmeal": 160,
}


def default_converter_rows() -> List[Dict[str, str]]:
    return [{"ingredient": "All-Purpose Flour", "override": "", "amount": "100", "unit": "g"}]


# -----------------------------------------------------------------------------
# Validators: a stored value failing its check is discarded
# -----------------------------------------------------------------------------
def _is_number(x) -> bool:
    return isinstance(x, (int, float)) and not isinstance(x, bool)


def valid_menu(data) -> bool:
    return isinstance(data, list) and all(
        isinstance(d, dict) and isinstance(d.get("name", ""), str) for d in data
    )


def valid_ingredient_lines(data) -> bool:
    if not isinstance(data, list):
        return False
    for it in data:
        if not isinstance(it, dict) or it.get("unit") not in UNIT_NAMES:
            return False
        amount = it.get("amount", "")
        if amount != "" and amount is not None and not _is_number(amount):
            return False
    return True


def valid_catalog(data) -> bool:
    if not isinstance(data, dict):
        return False
    for units in data.values():
        if not isinstance(units, dict):
            return False
        if not all(u in UNIT_NAMES and _is_number(p) for u, p in units.items()):
            return False
    return True


def valid_seats(data) -> bool:
    return isinstance(data, int) and not isinstance(data, bool) and data >= 1


def valid_densities(data) -> bool:
    return isinstance(data, dict) and all(_is_number(v) and v > 0 for v in data.values())


def valid_converter_rows(data) -> bool:
    return isinstance(data, list) and all(isinstance(r, dict) for r in data)


# -----------------------------------------------------------------------------
# Load / save
# -----------------------------------------------------------------------------
def _discard(path: Path, reason) -> None:
    logger.warning("Discarding stored state %s: %s", path.name, reason)
    try:
        path.unlink()
    except OSError as e:
        logger.warning("Could not remove %s: %s", path, e)


def load_state(name: str, default, validator: Optional[Callable[[Any], bool]] = None):
    """Return the stored value for ``name`` or ``default``.

    Unreadable or invalid files are removed and the default is returned.
    Stored dicts are merged over a dict default.
    """
    path = get_data_dir() / f"{name}.json"
    if not path.exists():
        return default
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        _discard(path, e)
        return default
    if validator is not None and not validator(data):
        _discard(path, "invalid shape")
        return default
    if isinstance(data, dict) and isinstance(default, dict):
        merged = default.copy()
        merged.update(data)
        return merged
    return data


def save_state(name: str, data) -> None:
    data_dir = get_data_dir()
    data_dir.mkdir(parents=True, exist_ok=True)
    path = data_dir / f"{name}.json"
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)


def clear_state(*names: str) -> None:
    for name in names:
        path = get_data_dir() / f"{name}.json"
        if path.exists():
            path.unlink()
    logger.info("Cleared stored state: %s", ", ".join(names))


def load_planner() -> Dict[str, Any]:
    """Menu, lines, catalog and seats; all four reset together if any is missing."""
    names = ("menu", "ingredient_lines", "catalog", "seats")
    if not all((get_data_dir() / f"{n}.json").exists() for n in names):
        return {
            "menu": default_menu(),
            "ingredient_lines": default_ingredient_lines(),
            "catalog": default_catalog(),
            "seats": DEFAULT_SEATS,
        }
    return {
        "menu": load_state("menu", default_menu(), valid_menu),
        "ingredient_lines": load_state("ingredient_lines", default_ingredient_lines(), valid_ingredient_lines),
        "catalog": load_state("catalog", {}, valid_catalog),
        "seats": load_state("seats", DEFAULT_SEATS, valid_seats),
    }


def save_planner(state: Dict[str, Any]) -> None:
    for name in ("menu", "ingredient_lines", "catalog", "seats"):
        save_state(name, state[name])


def load_densities() -> Dict[str, float]:
    return load_state("densities", dict(DEFAULT_DENSITIES), valid_densities)


def load_converter_rows() -> List[Dict[str, str]]:
    rows = load_state("converter_rows", None, valid_converter_rows)
    return rows if rows else default_converter_rows()


# -----------------------------------------------------------------------------
# Menu / density edits
# -----------------------------------------------------------------------------
def rename_dish(state: Dict[str, Any], index: int, new_name: str) -> None:
    dish = state["menu"][index]
    old = dish.get("name", "")
    dish["name"] = new_name
    for it in state["ingredient_lines"]:
        if it.get("dish") == old:
            it["dish"] = new_name


def remove_dish(state: Dict[str, Any], index: int) -> Dict[str, str]:
    removed = state["menu"].pop(index)
    state["ingredient_lines"] = [
        it for it in state["ingredient_lines"] if it.get("dish") != removed.get("name")
    ]
    return removed


def set_density(densities: Dict[str, float], name: str, value) -> None:
    name = (name or "").strip()
    if not name:
        raise InvalidInput("Enter an ingredient name")
    try:
        v = float(value)
    except (TypeError, ValueError):
        raise InvalidInput("Enter a valid density (g per cup)") from None
    if not v > 0:
        raise InvalidInput("Density must be positive")
    densities[name] = v


def delete_density(densities: Dict[str, float], name: str) -> None:
    densities.pop(name, None)


def reset_densities() -> Dict[str, float]:
    logger.info("Density list reset to defaults")
    return dict(DEFAULT_DENSITIES)


def clear_converter() -> Dict[str, float]:
    """Forget saved densities and converter rows; returns the default densities."""
    clear_state("densities", "converter_rows")
    return reset_densities()
