"""Draft validation package."""

from billstore.validation.validator import (
    BillTotals,
    BillValidator,
    calculate_totals,
)

__all__ = ["BillTotals", "BillValidator", "calculate_totals"]
