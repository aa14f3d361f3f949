"""Layout grammars for toll-provider PDF reports.

A toll PDF is reduced to plain text and handed to the grammars in
:func:`candidate_layouts` order: grammars whose signature appears in the text
first, then the rest, each group by rank. The first grammar that yields at
least one line wins.
"""

from __future__ import annotations

from collections.abc import Sequence

from .common import LayoutGrammar, LayoutResult, TollLine
from .fuel_summary import FuelSummaryLayout
from .grouped_ledger import SUMMARY_STRATEGY, GroupedLedgerLayout, distribute_vat
from .line_invoice import LineInvoiceLayout

LAYOUTS: tuple[LayoutGrammar, ...] = (
    GroupedLedgerLayout(),
    FuelSummaryLayout(),
    LineInvoiceLayout(),
)


def candidate_layouts(
    text: str, layouts: Sequence[LayoutGrammar] = LAYOUTS
) -> list[LayoutGrammar]:
    ranked = sorted(layouts, key=lambda layout: layout.rank)
    signed = [layout for layout in ranked if layout.matches(text)]
    return signed + [layout for layout in ranked if layout not in signed]


__all__ = [
    "LAYOUTS",
    "SUMMARY_STRATEGY",
    "FuelSummaryLayout",
    "GroupedLedgerLayout",
    "LayoutGrammar",
    "LayoutResult",
    "LineInvoiceLayout",
    "TollLine",
    "candidate_layouts",
    "distribute_vat",
]
