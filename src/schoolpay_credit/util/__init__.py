from .dates import parse_iso_date, parse_timestamp
from .money import minor_units_to_money_str, money_to_minor_units

__all__ = ["parse_iso_date", "parse_timestamp", "money_to_minor_units", "minor_units_to_money_str"]
