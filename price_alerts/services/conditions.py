"""Alert condition evaluation.

Pure functions only. Everything here is evaluated against literal prices so
it can be exercised without any collaborator.
"""
from decimal import Decimal
from enum import Enum
from typing import Optional


class AlertOperator(str, Enum):
    """Supported threshold relationships."""
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    GREATER_OR_EQUAL = "greater_or_equal"
    LESS_OR_EQUAL = "less_or_equal"
    CROSSES_UP = "crosses_up"
    CROSSES_DOWN = "crosses_down"

    @property
    def needs_prior_price(self) -> bool:
        return self in (AlertOperator.CROSSES_UP, AlertOperator.CROSSES_DOWN)


# Symbol spellings stored by older clients
OPERATOR_ALIASES = {
    ">": AlertOperator.GREATER_THAN,
    "<": AlertOperator.LESS_THAN,
    ">=": AlertOperator.GREATER_OR_EQUAL,
    "<=": AlertOperator.LESS_OR_EQUAL,
}

OPERATOR_SYMBOLS = {
    AlertOperator.GREATER_THAN: ">",
    AlertOperator.LESS_THAN: "<",
    AlertOperator.GREATER_OR_EQUAL: ">=",
    AlertOperator.LESS_OR_EQUAL: "<=",
    AlertOperator.CROSSES_UP: "crosses above",
    AlertOperator.CROSSES_DOWN: "crosses below",
}


def parse_operator(value) -> AlertOperator:
    """
    Normalize a stored operator into an AlertOperator.

    Args:
        value: Operator name, legacy symbol, or AlertOperator

    Returns:
        The matching AlertOperator

    Raises:
        ValueError: If the operator is not recognized
    """
    if isinstance(value, AlertOperator):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Unsupported alert operator: {value!r}")

    normalized = value.strip().lower()
    if normalized in OPERATOR_ALIASES:
        return OPERATOR_ALIASES[normalized]
    try:
        return AlertOperator(normalized)
    except ValueError:
        raise ValueError(f"Unsupported alert operator: {value!r}") from None


def holds(
    operator,
    threshold: Decimal,
    reference_price: Decimal,
    prior_reference_price: Optional[Decimal] = None
) -> bool:
    """
    Check whether an alert condition holds for the current price.

    Crossing operators need the previous reference price. Without one they
    never hold.

    Args:
        operator: AlertOperator or its stored name
        threshold: Alert threshold
        reference_price: Current midpoint price
        prior_reference_price: Midpoint observed on the previous run, if any

    Returns:
        True if the condition holds
    """
    op = parse_operator(operator)

    if op is AlertOperator.GREATER_THAN:
        return reference_price > threshold
    if op is AlertOperator.LESS_THAN:
        return reference_price < threshold
    if op is AlertOperator.GREATER_OR_EQUAL:
        return reference_price >= threshold
    if op is AlertOperator.LESS_OR_EQUAL:
        return reference_price <= threshold

    if prior_reference_price is None:
        return False
    if op is AlertOperator.CROSSES_UP:
        return prior_reference_price <= threshold < reference_price
    # CROSSES_DOWN
    return prior_reference_price >= threshold > reference_price
