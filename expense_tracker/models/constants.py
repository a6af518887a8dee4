"""Domain constants: supported currencies and expense categories."""

from typing import Dict, Set, Tuple

# code -> (display name, symbol)
CURRENCY_INFO: Dict[str, Tuple[str, str]] = {
    "USD": ("US Dollar", "$"),
    "EUR": ("Euro", "€"),
    "GBP": ("British Pound", "£"),
    "INR": ("Indian Rupee", "₹"),
    "JPY": ("Japanese Yen", "¥"),
    "CAD": ("Canadian Dollar", "C$"),
    "AUD": ("Australian Dollar", "A$"),
    "CHF": ("Swiss Franc", "CHF"),
    "CNY": ("Chinese Yuan", "¥"),
    "KRW": ("South Korean Won", "₩"),
    "SEK": ("Swedish Krona", "kr"),
    "NOK": ("Norwegian Krone", "kr"),
    "DKK": ("Danish Krone", "kr"),
    "PLN": ("Polish Zloty", "zł"),
    "CZK": ("Czech Koruna", "Kč"),
    "HUF": ("Hungarian Forint", "Ft"),
    "RUB": ("Russian Ruble", "₽"),
    "BRL": ("Brazilian Real", "R$"),
    "MXN": ("Mexican Peso", "$"),
    "SGD": ("Singapore Dollar", "S$"),
}

CURRENCIES: Set[str] = set(CURRENCY_INFO)

CATEGORIES: Set[str] = {
    "food",
    "transportation",
    "entertainment",
    "shopping",
    "bills",
    "healthcare",
    "education",
    "travel",
    "other",
}

MONTH_NAMES = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)
