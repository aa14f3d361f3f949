"""VAT derivation as an ordered list of named strategies.

Each strategy looks at the amounts a row provides and either returns a
complete :class:`VatResolution` or ``None`` to pass. :func:`resolve_vat` walks
the list in order and the first resolution wins; the winning strategy's name
is stored on the transaction. Order matters: the cheaper, more trustworthy
sources of truth come first.

Every resolution satisfies ``gross == net + vat`` exactly (after rounding to
cents). When the source amounts contradict each other the derived figures
replace them and ``needs_review`` is set.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from decimal import Decimal

from .errors import VatResolutionError
from .values import round_money

TOLERANCE = Decimal("0.02")
_HUNDRED = Decimal(100)


@dataclass(frozen=True, slots=True)
class VatInput:
    """Amounts as read from the source, plus the country's standard rate.

    ``country_rate`` is ``None`` when the country is unknown.
    """

    net: Decimal | None = None
    gross: Decimal | None = None
    vat: Decimal | None = None
    country_rate: Decimal | None = None


@dataclass(frozen=True, slots=True)
class VatResolution:
    net: Decimal
    vat: Decimal
    gross: Decimal
    rate: Decimal
    strategy: str
    needs_review: bool = False


type VatStrategy = Callable[[VatInput], VatResolution | None]


def effective_rate(net: Decimal, vat: Decimal) -> Decimal:
    """VAT as a percentage of ``net``, rounded to 2 places (0 for zero net)."""

    if net == 0:
        return Decimal("0")
    return round_money(vat / net * _HUNDRED)


def _disagrees(source: Decimal | None, derived: Decimal) -> bool:
    return source is not None and abs(source - derived) > TOLERANCE


def gross_minus_net(inp: VatInput) -> VatResolution | None:
    """Both amounts present and consistent: VAT is their difference."""

    if inp.net is None or inp.gross is None or inp.gross < inp.net:
        return None
    vat = inp.gross - inp.net
    return VatResolution(inp.net, vat, inp.gross, effective_rate(inp.net, vat), "gross_minus_net")


def stated_vat(inp: VatInput) -> VatResolution | None:
    """Trust an explicit VAT amount and backfill the missing side."""

    if inp.vat is None:
        return None
    if inp.net is not None:
        gross = inp.net + inp.vat
        return VatResolution(
            inp.net,
            inp.vat,
            gross,
            effective_rate(inp.net, inp.vat),
            "stated_vat",
            needs_review=_disagrees(inp.gross, gross),
        )
    if inp.gross is not None:
        net = inp.gross - inp.vat
        return VatResolution(net, inp.vat, inp.gross, effective_rate(net, inp.vat), "stated_vat")
    return None


def country_rate(inp: VatInput) -> VatResolution | None:
    """Apply the country's standard rate to the net amount."""

    if inp.net is None or inp.country_rate is None:
        return None
    vat = round_money(inp.net * inp.country_rate / _HUNDRED)
    gross = inp.net + vat
    return VatResolution(
        inp.net,
        vat,
        gross,
        inp.country_rate,
        "country_rate",
        needs_review=_disagrees(inp.gross, gross),
    )


def swapped_gross_net(inp: VatInput) -> VatResolution | None:
    """Gross below net: the columns are swapped in the export."""

    if inp.net is None or inp.gross is None or inp.gross >= inp.net:
        return None
    net, gross = inp.gross, inp.net
    vat = gross - net
    return VatResolution(
        net, vat, gross, effective_rate(net, vat), "swapped_gross_net", needs_review=True
    )


def gross_country_rate(inp: VatInput) -> VatResolution | None:
    """Only gross is known: back-calculate net from the country's rate."""

    if inp.gross is None or inp.net is not None or inp.country_rate is None:
        return None
    net = round_money(inp.gross * _HUNDRED / (_HUNDRED + inp.country_rate))
    return VatResolution(net, inp.gross - net, inp.gross, inp.country_rate, "gross_country_rate")


def no_vat(inp: VatInput) -> VatResolution | None:
    """A single amount and nothing to derive VAT from."""

    amount = inp.net if inp.net is not None else inp.gross
    if amount is None:
        return None
    return VatResolution(amount, Decimal("0.00"), amount, Decimal("0"), "no_vat")


DEFAULT_CASCADE: tuple[VatStrategy, ...] = (
    gross_minus_net,
    stated_vat,
    country_rate,
    swapped_gross_net,
    gross_country_rate,
    no_vat,
)

# Net and gross are always both present in this provider's exports.
GROSS_NET_CASCADE: tuple[VatStrategy, ...] = (
    gross_minus_net,
    swapped_gross_net,
    no_vat,
)


def _rounded(inp: VatInput) -> VatInput:
    def r(v: Decimal | None) -> Decimal | None:
        return round_money(v) if v is not None else None

    return VatInput(net=r(inp.net), gross=r(inp.gross), vat=r(inp.vat), country_rate=inp.country_rate)


def resolve_vat(inp: VatInput, strategies: Sequence[VatStrategy] = DEFAULT_CASCADE) -> VatResolution:
    """Return the first resolution produced by ``strategies``.

    Raises
    ------
    VatResolutionError
        When no strategy applies (the row carries no amount at all).
    """

    rounded = _rounded(inp)
    for strategy in strategies:
        resolution = strategy(rounded)
        if resolution is not None:
            return resolution
    raise VatResolutionError("row has neither a net nor a gross amount")


def calculate_vat(gross: Decimal | None, net: Decimal | None) -> tuple[Decimal, Decimal]:
    """Return ``(vat_amount, vat_percentage)`` from gross and net.

    Zero for missing amounts or when gross does not exceed net.
    """

    if not gross or not net or gross <= net:
        return Decimal("0.00"), Decimal("0.00")
    vat = round_money(gross - net)
    return vat, effective_rate(net, vat)


__all__ = [
    "DEFAULT_CASCADE",
    "GROSS_NET_CASCADE",
    "TOLERANCE",
    "VatInput",
    "VatResolution",
    "VatStrategy",
    "calculate_vat",
    "country_rate",
    "effective_rate",
    "gross_country_rate",
    "gross_minus_net",
    "no_vat",
    "resolve_vat",
    "stated_vat",
    "swapped_gross_net",
]
