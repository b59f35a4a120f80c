"""
Condition resolver - decides which items count toward a trip's totals.

Used by the cotation catalog (base cost of each pricing scenario), the trip
cost summary endpoint and the selection wizard's confirmation step. Results
must match the pricing engine's view of which cost lines are active.

Every unresolved or missing input degrades to inclusion ("show everything"):
- Formula without condition → all items count
- Item without condition_option_id → common cost, always counts
- Trip conditions not loaded yet → everything counts
- Condition not activated / deactivated on the trip → everything counts
- Condition active but no option chosen → option-tagged items are excluded
  so the operator is forced to choose instead of reading a misleading total
- Otherwise → strict match between the item's option and the selected one

None of these functions raise.
"""

from decimal import Decimal
from types import SimpleNamespace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

# None = not loaded yet. Either a list of TripCondition-like objects or a
# {condition_id: TripCondition} map (as built by merge_cotation_selections).
TripConditions = Union[Mapping[int, Any], Iterable[Any], None]


def _get(obj: Any, name: str, default: Any = None) -> Any:
    """Read a field from an ORM object, a namespace or a raw API dict."""
    if obj is None:
        return default
    if isinstance(obj, Mapping):
        return obj.get(name, default)
    return getattr(obj, name, default)


def find_trip_condition(trip_conditions: TripConditions, condition_id: Optional[int]) -> Optional[Any]:
    """Return the TripCondition row for a condition, or None."""
    if trip_conditions is None or condition_id is None:
        return None
    if isinstance(trip_conditions, Mapping):
        return trip_conditions.get(condition_id)
    for tc in trip_conditions:
        if _get(tc, "condition_id") == condition_id:
            return tc
    return None


def explain_item_inclusion(
    item: Any,
    formula: Any,
    trip_conditions: TripConditions = None,
) -> Tuple[bool, Optional[str]]:
    """
    Check whether an item counts toward totals, with the reason when it does not.

    Returns:
        (True, None) if the item is included
        (False, reason) otherwise, reason being shown to the operator
    """
    condition_id = _get(formula, "condition_id")
    condition_option_id = _get(item, "condition_option_id")

    # 1. Formula without condition → all items unconditional
    if condition_id is None:
        return True, None

    # 2. Item without condition_option_id → common cost, always included
    if condition_option_id is None:
        return True, None

    # 3. Trip conditions not loaded → include
    if trip_conditions is None:
        return True, None

    # 4. No trip condition activated for this → include
    trip_condition = find_trip_condition(trip_conditions, condition_id)
    if trip_condition is None:
        return True, None

    # 5. Condition disabled → include
    if not _get(trip_condition, "is_active", True):
        return True, None

    # 6. No option selected yet → exclude conditioned items (force a choice)
    selected_option_id = _get(trip_condition, "selected_option_id")
    if selected_option_id is None:
        return False, (
            f"Item '{_get(item, 'name', '?')}' exclu "
            f"(aucune option choisie pour la condition)"
        )

    # 7. Strict match
    if condition_option_id != selected_option_id:
        item_label = _option_label(trip_condition, condition_option_id) or "?"
        selected_label = _option_label(trip_condition, selected_option_id) or "?"
        return False, (
            f"Item '{_get(item, 'name', '?')}' exclu "
            f"(option '{item_label}' ≠ sélection '{selected_label}')"
        )

    return True, None


def should_include_item(
    item: Any,
    formula: Any,
    trip_conditions: TripConditions = None,
) -> bool:
    """Whether an item counts toward the trip's totals. Pure and total."""
    include, _ = explain_item_inclusion(item, formula, trip_conditions)
    return include


def find_active_variant(
    variants: Sequence[Any],
    condition_id: Optional[int],
    trip_conditions: TripConditions = None,
) -> Optional[Any]:
    """
    Find the active variant in a group of blocks sharing the same condition.

    Returns the first variant owning an item tagged with the selected option,
    falling back to the first variant whenever the choice cannot be resolved.
    Only an empty group yields None.
    """
    if not variants:
        return None
    default = variants[0]

    trip_condition = find_trip_condition(trip_conditions, condition_id)
    if trip_condition is None or not _get(trip_condition, "is_active", True):
        return default

    selected_option_id = _get(trip_condition, "selected_option_id")
    if selected_option_id is None:
        return default

    for variant in variants:
        if any(
            _get(item, "condition_option_id") == selected_option_id
            for item in (_get(variant, "items") or [])
        ):
            return variant
    return default


def get_variant_option_label(
    variant: Any,
    trip_conditions: TripConditions = None,
    condition_id: Optional[int] = None,
) -> Optional[str]:
    """Label of the option represented by a variant's first item."""
    if condition_id is None or trip_conditions is None:
        return None

    trip_condition = find_trip_condition(trip_conditions, condition_id)
    if trip_condition is None:
        return None

    items = _get(variant, "items") or []
    if not items:
        return None
    option_id = _get(items[0], "condition_option_id")
    if option_id is None:
        return None

    return _option_label(trip_condition, option_id)


def _loaded(obj: Any, name: str) -> Any:
    """Like _get, but never triggers an ORM lazy load."""
    state = getattr(obj, "_sa_instance_state", None)
    if state is not None and name in state.unloaded:
        return None
    return _get(obj, name)


def _option_label(trip_condition: Any, option_id: Optional[int]) -> Optional[str]:
    for option in _get(trip_condition, "options") or []:
        if _get(option, "id") == option_id:
            return _get(option, "label")
    selected = _loaded(trip_condition, "selected_option")
    if selected is not None and _get(selected, "id") == option_id:
        return _get(selected, "label")
    return None


# ---------------------------------------------------------------------------
# Cotation overrides & totals
# ---------------------------------------------------------------------------

def merge_cotation_selections(
    trip_conditions: TripConditions,
    condition_selections: Optional[Mapping[Any, Any]],
) -> Optional[Dict[int, Any]]:
    """
    Build a conditions map merging trip-level choices with cotation overrides.

    A condition listed in the cotation's selections is forced active with the
    cotation's option, whatever the trip-level row says. Returns None when
    nothing is known (trip conditions not loaded and no override).
    """
    if trip_conditions is None and not condition_selections:
        return None

    conditions_map: Dict[int, Any] = {}
    if isinstance(trip_conditions, Mapping):
        conditions_map.update(trip_conditions)
    elif trip_conditions is not None:
        for tc in trip_conditions:
            conditions_map[_get(tc, "condition_id")] = tc

    for condition_id_key, selected_option_id in (condition_selections or {}).items():
        try:
            condition_id = int(condition_id_key)
        except (TypeError, ValueError):
            continue
        base = conditions_map.get(condition_id)
        conditions_map[condition_id] = SimpleNamespace(
            condition_id=condition_id,
            selected_option_id=selected_option_id,
            is_active=True,
            options=list(_get(base, "options") or []),
            selected_option=None,
        )

    return conditions_map


def included_items(formula: Any, trip_conditions: TripConditions = None) -> List[Any]:
    """Items of a formula that count toward totals."""
    return [
        item for item in (_get(formula, "items") or [])
        if should_include_item(item, formula, trip_conditions)
    ]


def _service_days(formula: Any) -> int:
    start = _get(formula, "service_day_start")
    end = _get(formula, "service_day_end")
    if start is None and end is None:
        return 1  # Forfait
    start = start if start is not None else 1
    end = end if end is not None else start
    return max(1, end - start + 1)


def formula_base_cost(formula: Any, trip_conditions: TripConditions = None) -> Decimal:
    """
    Raw cost of a formula: Σ unit_cost × service days over included items.
    No ratio, season, currency or margin rule is applied.
    """
    days = _service_days(formula)
    total = Decimal("0")
    for item in included_items(formula, trip_conditions):
        total += Decimal(str(_get(item, "unit_cost") or 0)) * days
    return total


def trip_base_cost(formulas: Iterable[Any], trip_conditions: TripConditions = None) -> Decimal:
    """Raw cost of a set of formulas (see formula_base_cost)."""
    return sum(
        (formula_base_cost(f, trip_conditions) for f in formulas),
        Decimal("0"),
    )


def effective_day_block(
    blocks: Sequence[Any],
    block_type: str,
    trip_conditions: TripConditions = None,
) -> Tuple[Optional[Any], Optional[str]]:
    """
    Block of a given type that actually applies to a day, with its option label.

    Blocks carrying a condition are variants of each other: the active variant
    of the first condition group wins. Otherwise the first standalone block.
    """
    typed = [b for b in blocks if _get(b, "block_type") == block_type]
    variants = [b for b in typed if _get(b, "condition_id") is not None]
    if variants:
        condition_id = _get(variants[0], "condition_id")
        group = [b for b in variants if _get(b, "condition_id") == condition_id]
        active = find_active_variant(group, condition_id, trip_conditions)
        return active, get_variant_option_label(active, trip_conditions, condition_id)
    if typed:
        return typed[0], None
    return None, None
