from __future__ import annotations

from datetime import datetime
from decimal import Decimal


def format_decimal(value: Decimal) -> str:
    quantized = value.normalize()
    # Avoid scientific notation for integers.
    if quantized == quantized.to_integral():
        return f"{quantized:.0f}"
    return format(quantized, "f")


def format_currency(value: Decimal) -> str:
    cents = value.quantize(Decimal("0.01"))
    if cents == 0:
        cents = abs(cents)
    return f"{cents:,.2f}"


def format_rate(value: Decimal) -> str:
    return f"{value.quantize(Decimal('0.0001')):.4f}"


def format_timestamp(value: datetime) -> str:
    return value.strftime("%Y-%m-%d %H:%M")


def render_table(headers: list[str], rows: list[list[str]], *, left_aligned: int = 1) -> str:
    """Lay out ``rows`` under ``headers``; the first ``left_aligned`` columns align left."""
    widths = [max(len(header), max((len(row[idx]) for row in rows), default=0)) for idx, header in enumerate(headers)]

    def line(cells: list[str]) -> str:
        return " ".join(
            f"{cell:<{widths[idx]}}" if idx < left_aligned else f"{cell:>{widths[idx]}}"
            for idx, cell in enumerate(cells)
        )

    header = line(headers)
    lines = [header, "-" * len(header)]
    lines.extend(line(row) for row in rows)
    return "\n".join(lines)
