from __future__ import annotations

from datetime import date
from decimal import Decimal

WEEKDAYS_PT = ["Segunda", "Terça", "Quarta", "Quinta", "Sexta", "Sábado", "Domingo"]
MONTHS_PT = ["Jan", "Fev", "Mar", "Abr", "Mai", "Jun", "Jul", "Ago", "Set", "Out", "Nov", "Dez"]


def format_price(value) -> str:
    """45 -> 'R$ 45', 45.5 -> 'R$ 45,50'. None -> ''."""
    if value is None:
        return ""
    amount = Decimal(str(value))
    if amount == amount.to_integral_value():
        return f"R$ {int(amount)}"
    return f"R$ {amount.quantize(Decimal('0.01'))}".replace(".", ",")


def format_date_br(iso: str | None) -> str:
    """'2024-01-15' -> '15/01/2024'."""
    if not iso:
        return ""
    return "/".join(reversed(iso.split("-")))


def weekday_pt(iso: str) -> str:
    return WEEKDAYS_PT[date.fromisoformat(iso).weekday()]


def short_datetime_label(iso: str, time: str) -> str:
    """'2024-01-15', '14:30' -> '15 Jan, 14:30'."""
    d = date.fromisoformat(iso)
    return f"{d.day} {MONTHS_PT[d.month - 1]}, {time}"


def first_name(full_name: str | None) -> str:
    return (full_name or "").strip().split(" ")[0]
