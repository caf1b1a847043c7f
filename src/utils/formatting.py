from __future__ import annotations

from decimal import Decimal

CURRENCY_SYMBOLS = {
    "BRL": "R$",
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
}


def format_decimal(value: Decimal) -> str:
    quantized = value.normalize()
    # Avoid scientific notation for integers.
    if quantized == quantized.to_integral():
        return f"{quantized:.0f}"
    return format(quantized, "f")


def format_currency(value: Decimal) -> str:
    cents = value.quantize(Decimal("0.01"))
    return f"{cents:.2f}"


def currency_symbol(currency: str | None) -> str:
    if not currency or not currency.strip():
        return "¤"
    code = currency.strip().upper()
    return CURRENCY_SYMBOLS.get(code, code)


def format_money(value: Decimal, currency: str) -> str:
    symbol = currency_symbol(currency)
    sign = "-" if value < 0 else ""
    amount = format_currency(abs(value))
    if symbol == currency.strip().upper():
        return f"{sign}{symbol} {amount}"
    return f"{sign}{symbol}{amount}"
