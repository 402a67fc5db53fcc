"""Alert message formatting utilities."""
from decimal import Decimal

from price_alerts.notifications.base import TriggerEvent
from price_alerts.services.conditions import OPERATOR_SYMBOLS, parse_operator


def format_price(value: Decimal) -> str:
    """Format a price with two decimals, or more when the threshold needs them."""
    value = Decimal(value)
    exponent = value.normalize().as_tuple().exponent
    places = max(2, -exponent) if isinstance(exponent, int) else 2
    return f"${value:,.{places}f}"


def describe_operator(operator: str) -> str:
    """Human readable operator, falling back to the raw value."""
    try:
        return OPERATOR_SYMBOLS[parse_operator(operator)]
    except ValueError:
        return str(operator)


def format_alert_message(event: TriggerEvent) -> str:
    """
    Format a trigger event into a notification message.

    Args:
        event: Fired alert

    Returns:
        Formatted message string
    """
    triggered_at = event.triggered_at.strftime("%Y-%m-%d %H:%M:%S %Z").strip()

    message = f"""
🚨 Price Alert: {event.symbol}

Condition: {event.symbol} {describe_operator(event.operator)} {format_price(event.threshold)}
💰 Current price: {format_price(event.observed_price)}
🕒 Triggered at: {triggered_at}
"""
    return message.strip()
