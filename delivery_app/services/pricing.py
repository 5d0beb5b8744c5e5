"""
Order Pricing

Computes the price of each ordered dish from its base price and the
options the customer selected.

Matching is permissive by default: a selected option or choice that the
dish does not declare adds nothing. Pass ``strict=True`` to reject such
selections instead.
"""

from typing import Any, Iterable, Mapping, Optional, Sequence

from delivery_app.services.errors import ValidationFailedError


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def _find_by_name(entries: Optional[Iterable[Any]], name: Optional[str]) -> Any:
    for entry in entries or ():
        if _field(entry, "name") == name:
            return entry
    return None


def compute_line_total(
    base_price: float,
    declared_options: Optional[Sequence[Any]],
    selected_options: Optional[Sequence[Any]],
    strict: bool = False,
) -> float:
    """
    Price one ordered dish.

    Args:
        base_price: The dish price
        declared_options: Options the dish offers (dicts or DishOption models)
        selected_options: Options picked by the customer (name + optional choice)
        strict: Raise ValidationFailedError on unknown options/choices

    Returns:
        float: Base price plus option and choice surcharges
    """
    total = base_price

    for selected in selected_options or ():
        option_name = _field(selected, "name")
        declared = _find_by_name(declared_options, option_name)
        if declared is None:
            if strict:
                raise ValidationFailedError(f"Unknown option '{option_name}'")
            continue

        # A flat-priced option never looks at choices
        flat_price = _field(declared, "price")
        if flat_price:
            total += flat_price
            continue

        choice_name = _field(selected, "choice")
        if choice_name is None:
            continue

        choice = _find_by_name(_field(declared, "choices"), choice_name)
        if choice is None:
            if strict:
                raise ValidationFailedError(
                    f"Unknown choice '{choice_name}' for option '{option_name}'"
                )
            continue

        total += _field(choice, "price") or 0

    return total


def compute_order_total(line_totals: Iterable[float]) -> float:
    """Sum line totals in the order the items were submitted."""
    total = 0.0
    for line_total in line_totals:
        total += line_total
    return total
