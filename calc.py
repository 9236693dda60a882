"""Pure calculation utilities for menu planning and ingredient conversion."""

import logging
import math
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

logger = logging.getLogger(__name__)


class InvalidInput(ValueError):
    """Raised when a caller hands the engine a value it cannot work with."""


class _Sentinel:
    def __init__(self, name: str):
        self.name = name

    def __repr__(self) -> str:
        return self.name

    def __bool__(self) -> bool:
        return False


# Returned (never raised) when two units cannot be converted.
INCOMPATIBLE = _Sentinel("INCOMPATIBLE")
# Returned when no price can be derived for a shopping row.
UNRESOLVED = _Sentinel("UNRESOLVED")


# -----------------------------------------------------------------------------
# Units
# -----------------------------------------------------------------------------
class Family(Enum):
    MASS = "mass"
    VOLUME = "volume"
    COUNT = "count"


WEIGHT_UNIT_GRAMS = {"Pounds": 453.592, "Ounces": 28.3495, "Grams": 1.0, "Kilograms": 1000.0}
VOLUME_UNIT_ML = {"Liters": 1000.0, "Milliliters": 1.0, "Cups": 240.0}


class Unit(str, Enum):
    POUNDS = "Pounds"
    OUNCES = "Ounces"
    GRAMS = "Grams"
    KILOGRAMS = "Kilograms"
    LITERS = "Liters"
    MILLILITERS = "Milliliters"
    CUPS = "Cups"
    BAG = "Bag"
    CASE = "Case"

    @property
    def family(self) -> Family:
        if self.value in WEIGHT_UNIT_GRAMS:
            return Family.MASS
        if self.value in VOLUME_UNIT_ML:
            return Family.VOLUME
        return Family.COUNT

    @property
    def factor(self) -> Optional[float]:
        """Grams (mass) or millilitres (volume) in one unit; None for count units."""
        if self.family is Family.MASS:
            return WEIGHT_UNIT_GRAMS[self.value]
        if self.family is Family.VOLUME:
            return VOLUME_UNIT_ML[self.value]
        return None

    def __str__(self) -> str:
        return self.value


ALL_UNITS: List[Unit] = list(Unit)
UNIT_NAMES = [u.value for u in ALL_UNITS]


def units_in_family(family: Family) -> List[Unit]:
    return [u for u in Unit if u.family is family]


def parse_unit(value: Union[Unit, str]) -> Unit:
    """Return the Unit named by ``value`` or raise InvalidInput."""
    if isinstance(value, Unit):
        return value
    try:
        return Unit(value)
    except ValueError:
        raise InvalidInput(f"Unknown unit: {value!r}") from None


def _convertible(a: Unit, b: Unit) -> bool:
    return a.family is b.family and a.family is not Family.COUNT


def convert(amount: float, from_unit: Union[Unit, str], to_unit: Union[Unit, str]):
    """Convert a quantity between units of the same family.

    Returns INCOMPATIBLE across families or for count units. No rounding.
    """
    src, dst = parse_unit(from_unit), parse_unit(to_unit)
    if src is dst:
        return amount
    if not _convertible(src, dst):
        return INCOMPATIBLE
    return amount * src.factor / dst.factor


def convert_rate(price_per_unit: float, from_unit: Union[Unit, str], to_unit: Union[Unit, str]):
    """Convert a price per ``from_unit`` into a price per ``to_unit``."""
    src, dst = parse_unit(from_unit), parse_unit(to_unit)
    if src is dst:
        return price_per_unit
    if not _convertible(src, dst):
        return INCOMPATIBLE
    return price_per_unit / src.factor * dst.factor


# -----------------------------------------------------------------------------
# Rounding / display
# -----------------------------------------------------------------------------
def round_half_up(value: float, places: int) -> float:
    """Round like a receipt does (0.375 -> 0.38), not banker's rounding.

    Float noise below 1e-9 is dropped first so 0.37499999999999994 still
    rounds up.
    """
    q = Decimal(1).scaleb(-places)
    return float(Decimal(repr(round(value, 9))).quantize(q, rounding=ROUND_HALF_UP))


def format_fixed(value: float, places: int) -> str:
    return f"{round_half_up(value, places):.{places}f}"


def format_quantity(value: float) -> str:
    """Quantity rounded to 3 decimals, trailing zeros dropped."""
    txt = format_fixed(value, 3).rstrip("0").rstrip(".")
    return "0" if txt in ("", "-0") else txt


def price_decimals(price: float) -> int:
    # sub-cent prices keep 4 decimals so they don't display as 0.00
    return 4 if 0 < price < 0.01 else 2


def format_price_per_unit(price: float) -> str:
    return format_fixed(price, price_decimals(price))


# -----------------------------------------------------------------------------
# Quantity aggregation
# -----------------------------------------------------------------------------
@dataclass
class IngredientLine:
    dish: str
    ingredient: str
    amount: Optional[float]
    unit: Unit

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "IngredientLine":
        amount = d.get("amount")
        if amount == "" or amount is None:
            amount = None
        else:
            amount = float(amount)
        return cls(
            dish=d.get("dish", "") or "",
            ingredient=d.get("ingredient", "") or "",
            amount=amount,
            unit=parse_unit(d.get("unit") or ALL_UNITS[0]),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dish": self.dish,
            "ingredient": self.ingredient,
            "amount": "" if self.amount is None else self.amount,
            "unit": self.unit.value,
        }


@dataclass
class AggregatedEntry:
    ingredient: str
    total_amount: float
    unit: Unit
    # catalog name; ``ingredient`` may carry a " (<unit>)" disambiguator
    base_name: str = ""

    def __post_init__(self):
        if not self.base_name:
            self.base_name = self.ingredient


def _unique_key(name: str, taken: Dict[str, AggregatedEntry]) -> str:
    if name not in taken:
        return name
    n = 2
    while f"{name} {n}" in taken:
        n += 1
    return f"{name} {n}"


def aggregate(lines: Iterable[IngredientLine], seat_multiplier: int) -> List[AggregatedEntry]:
    """Combine recipe lines into one entry per ingredient and unit family.

    Lines with a blank ingredient or unset amount are skipped. A line whose
    unit cannot be converted into the first-seen unit for its ingredient
    goes to a separate ``"<ingredient> (<unit>)"`` entry holding only that
    unit. Display keys that collide get a numeric suffix.
    """
    agg: Dict[str, AggregatedEntry] = {}
    primary: Dict[str, AggregatedEntry] = {}
    split: Dict[Tuple[str, Unit], AggregatedEntry] = {}
    for line in lines:
        if not line.ingredient or line.amount is None:
            continue
        total = float(line.amount) * seat_multiplier
        name = line.ingredient
        entry = primary.get(name)
        if entry is None:
            entry = AggregatedEntry(_unique_key(name, agg), total, line.unit, base_name=name)
            primary[name] = agg[entry.ingredient] = entry
            continue
        converted = convert(total, line.unit, entry.unit)
        if converted is not INCOMPATIBLE:
            entry.total_amount += converted
            continue
        extra = split.get((name, line.unit))
        if extra is not None:
            extra.total_amount += total
            continue
        logger.debug("split %r: %s does not convert to %s", name, line.unit, entry.unit)
        key = _unique_key(f"{name} ({line.unit.value})", agg)
        extra = AggregatedEntry(key, total, line.unit, base_name=name)
        split[(name, line.unit)] = agg[key] = extra
    return list(agg.values())


# -----------------------------------------------------------------------------
# Shopping rows and pricing
# -----------------------------------------------------------------------------
PriceCatalog = Dict[str, Dict[str, float]]


class PriceState(Enum):
    DERIVED = "derived"
    USER_SET = "user_set"


@dataclass
class ShoppingRow:
    ingredient: str
    display_name: str
    total_amount: float
    unit: Unit
    unit_count: Optional[int] = None
    type_of_unit: Optional[Unit] = None
    price: Optional[float] = None
    price_state: PriceState = field(default=PriceState.DERIVED)


def generate_shopping_list(lines: Iterable[IngredientLine], seats: int) -> List[ShoppingRow]:
    return [
        ShoppingRow(
            ingredient=e.base_name,
            display_name=e.ingredient,
            total_amount=e.total_amount,
            unit=e.unit,
            type_of_unit=e.unit,
        )
        for e in aggregate(lines, seats)
    ]


def lookup_price_per_unit(catalog: PriceCatalog, ingredient: str, unit: Union[Unit, str]):
    """Price per one ``unit`` of ``ingredient``, direct or converted from a stored unit."""
    unit = parse_unit(unit)
    entries = catalog.get(ingredient)
    if not entries:
        return UNRESOLVED
    if unit.value in entries:
        return entries[unit.value]
    for stored, rate in entries.items():
        if stored not in UNIT_NAMES:
            logger.debug("ignoring unknown catalog unit %r for %r", stored, ingredient)
            continue
        converted = convert_rate(rate, stored, unit)
        if converted is not INCOMPATIBLE:
            return converted
    return UNRESOLVED


def resolve_price(row: ShoppingRow, catalog: PriceCatalog):
    """Total price for a row, or UNRESOLVED. Unrounded."""
    if row.unit_count is None or row.type_of_unit is None:
        return UNRESOLVED
    per_unit = lookup_price_per_unit(catalog, row.ingredient, row.type_of_unit)
    if per_unit is UNRESOLVED:
        return UNRESOLVED
    return per_unit * row.unit_count


def refresh_row_price(row: ShoppingRow, catalog: PriceCatalog) -> bool:
    """Recompute an auto-derived price. User-entered prices are left alone."""
    if row.price_state is PriceState.USER_SET and row.price is not None:
        return False
    price = resolve_price(row, catalog)
    row.price = None if price is UNRESOLVED else round_half_up(price, 2)
    row.price_state = PriceState.DERIVED
    return True


_KEEP = object()


def _parse_count(value) -> int:
    """A whole, non-negative number of units or InvalidInput."""
    try:
        v = float(value)
    except (TypeError, ValueError):
        raise InvalidInput(f"Unit count is not a number: {value!r}") from None
    if not math.isfinite(v) or v < 0 or v != int(v):
        raise InvalidInput(f"Unit count must be a whole number of at least 0: {value!r}")
    return int(v)


def edit_row_quantity(row: ShoppingRow, catalog: PriceCatalog, unit_count=_KEEP, type_of_unit=_KEEP) -> ShoppingRow:
    """Apply the user's count/unit edit; the row's price becomes derived again."""
    if unit_count is not _KEEP:
        if unit_count is None or unit_count == "":
            row.unit_count = None
        else:
            row.unit_count = _parse_count(unit_count)
    if type_of_unit is not _KEEP:
        row.type_of_unit = None if type_of_unit is None else parse_unit(type_of_unit)
    row.price_state = PriceState.DERIVED
    refresh_row_price(row, catalog)
    return row


def record_observation(catalog: PriceCatalog, ingredient: str, unit: Union[Unit, str], price_per_unit: float) -> None:
    """Store a price per unit and spread it across the unit's family.

    Count units only get their own entry. Mutates ``catalog`` in place.
    """
    unit = parse_unit(unit)
    if not math.isfinite(price_per_unit) or price_per_unit < 0:
        raise InvalidInput(f"Invalid price per unit: {price_per_unit!r}")
    entries = catalog.setdefault(ingredient, {})
    entries[unit.value] = price_per_unit
    if unit.family is Family.COUNT:
        return
    per_base = price_per_unit / unit.factor
    for other in units_in_family(unit.family):
        entries[other.value] = per_base * other.factor
    logger.debug("catalog %r: %s prices from %s", ingredient, unit.family.value, unit)


def record_row_price(row: ShoppingRow, catalog: PriceCatalog, price) -> ShoppingRow:
    """Apply the user's own price edit and feed it back into the catalog."""
    if price is None or price == "":
        row.price = None
        row.price_state = PriceState.USER_SET
        return row
    try:
        value = float(price)
    except (TypeError, ValueError):
        raise InvalidInput(f"Price is not a number: {price!r}") from None
    if not math.isfinite(value) or value < 0:
        raise InvalidInput(f"Price must be a non-negative number: {price!r}")
    row.price = value
    row.price_state = PriceState.USER_SET
    if row.unit_count and row.type_of_unit is not None:
        record_observation(catalog, row.ingredient, row.type_of_unit, value / row.unit_count)
    return row


def priced_total(rows: Iterable[ShoppingRow]) -> float:
    return sum(r.price for r in rows if r.price is not None)


# -----------------------------------------------------------------------------
# Density conversion
# -----------------------------------------------------------------------------
CUP_ML = 236.588
TBSP_PER_CUP = 16
TSP_PER_TBSP = 3


class MetricUnit(str, Enum):
    G = "g"
    KG = "kg"
    ML = "ml"
    L = "l"


class ConversionError(Enum):
    PICK_INGREDIENT = "Pick ingredient"
    UNKNOWN_DENSITY = "Unknown density — add it below"
    ENTER_AMOUNT = "Enter amount"

    @property
    def message(self) -> str:
        return self.value


@dataclass(frozen=True)
class DensityResult:
    grams: float
    cups: float
    tbsp: float
    tsp: float


def _to_positive_float(x) -> Optional[float]:
    try:
        v = float(x)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(v) or v <= 0:
        return None
    return v


def convert_by_density(amount, unit: Union[MetricUnit, str], density) -> Union[DensityResult, ConversionError]:
    """Convert a metric amount to grams, cups, tablespoons and teaspoons.

    ``density`` is grams per cup. Bad density or amount yields a
    ConversionError value instead of an exception.
    """
    try:
        unit = MetricUnit(unit)
    except ValueError:
        raise InvalidInput(f"Unknown metric unit: {unit!r}") from None
    dens = _to_positive_float(density)
    if dens is None:
        return ConversionError.UNKNOWN_DENSITY
    qty = _to_positive_float(amount)
    if qty is None:
        return ConversionError.ENTER_AMOUNT

    if unit is MetricUnit.G:
        grams = qty
    elif unit is MetricUnit.KG:
        grams = qty * 1000
    elif unit is MetricUnit.ML:
        grams = qty * (dens / CUP_ML)
    else:
        grams = (qty * 1000) * (dens / CUP_ML)

    cups = grams / dens
    tbsp = cups * TBSP_PER_CUP
    tsp = tbsp * TSP_PER_TBSP
    if not all(math.isfinite(x) for x in (grams, cups, tbsp, tsp)):
        return ConversionError.ENTER_AMOUNT
    return DensityResult(grams=grams, cups=cups, tbsp=tbsp, tsp=tsp)


def convert_ingredient(name: str, amount, unit: Union[MetricUnit, str], densities: Dict[str, float]):
    """Density conversion by ingredient name, looking the density up in ``densities``."""
    if not name:
        return ConversionError.PICK_INGREDIENT
    return convert_by_density(amount, unit, densities.get(name))
