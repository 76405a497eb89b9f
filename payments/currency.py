"""
Amounts are carried as integers in the currency's smallest unit everywhere.
The exponent says how many decimal places separate the minor unit from the major one.
"""

MINOR_UNIT_EXPONENTS = {
    "rwf": 0,
    "ugx": 0,
    "jpy": 0,
    "krw": 0,
    "bif": 0,
    "usd": 2,
    "eur": 2,
    "gbp": 2,
    "kes": 2,
    "tzs": 2,
}
DEFAULT_EXPONENT = 2


def minor_unit_exponent(currency: str) -> int:
    return MINOR_UNIT_EXPONENTS.get(currency.lower(), DEFAULT_EXPONENT)


def format_amount(amount: int, currency: str) -> str:
    """format_amount(150000, "rwf") -> "RWF 150,000"; format_amount(123450, "usd") -> "USD 1,234.50"."""
    exponent = minor_unit_exponent(currency)
    sign = "-" if amount < 0 else ""
    major, minor = divmod(abs(int(amount)), 10 ** exponent)
    text = f"{major:,}"
    if exponent:
        text += f".{minor:0{exponent}d}"
    return f"{currency.upper()} {sign}{text}"
