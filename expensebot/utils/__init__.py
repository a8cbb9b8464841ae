from . import money
from .money import InvalidAmountError, format_amount_for_display, parse_amount_token, quantize_amount

__all__ = [
    "money",
    "format_amount_for_display",
    "parse_amount_token",
    "quantize_amount",
    "InvalidAmountError",
]
