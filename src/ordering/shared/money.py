"""Helpers for monetary amounts.

Amounts are carried as floats in major currency units inside the domain and
converted to integer minor units (kobo, cents) at the payment gateway boundary.
"""


def round_money(amount: float) -> float:
    return round(float(amount or 0.0), 2)


def to_minor_units(amount: float) -> int:
    return int(round(float(amount) * 100))


def from_minor_units(amount: int) -> float:
    return round_money(int(amount) / 100)
