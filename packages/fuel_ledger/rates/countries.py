"""Static per-country reference data: VAT profiles, currencies and aliases.

Lookups accept ISO alpha-2 or alpha-3 codes and English, Romanian or German
country names in any case and with or without diacritics.
"""

from __future__ import annotations

import unicodedata
from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True, slots=True)
class VatProfile:
    country_code: str | None
    name: str
    rate: Decimal
    refundable: bool


UNKNOWN_VAT = VatProfile(country_code=None, name="Unknown", rate=Decimal("0"), refundable=False)

# (standard rate, display name). EU members are refundable.
_EU_VAT: dict[str, tuple[str, str]] = {
    "RO": ("19", "Romania"),
    "BG": ("20", "Bulgaria"),
    "HU": ("27", "Hungary"),
    "AT": ("20", "Austria"),
    "DE": ("19", "Germany"),
    "PL": ("23", "Poland"),
    "CZ": ("21", "Czech Republic"),
    "SK": ("20", "Slovakia"),
    "SI": ("22", "Slovenia"),
    "HR": ("25", "Croatia"),
    "IT": ("22", "Italy"),
    "FR": ("20", "France"),
    "ES": ("21", "Spain"),
    "PT": ("23", "Portugal"),
    "BE": ("21", "Belgium"),
    "NL": ("21", "Netherlands"),
    "LU": ("17", "Luxembourg"),
    "GR": ("24", "Greece"),
    "IE": ("23", "Ireland"),
    "DK": ("25", "Denmark"),
    "SE": ("25", "Sweden"),
    "FI": ("24", "Finland"),
    "EE": ("22", "Estonia"),
    "LV": ("21", "Latvia"),
    "LT": ("21", "Lithuania"),
    "MT": ("18", "Malta"),
    "CY": ("19", "Cyprus"),
}

_NON_EU_VAT: dict[str, tuple[str, str]] = {
    "RS": ("20", "Serbia"),
    "UA": ("20", "Ukraine"),
    "MD": ("20", "Moldova"),
    "TR": ("20", "Turkey"),
    "CH": ("8.1", "Switzerland"),
    "GB": ("20", "United Kingdom"),
    "NO": ("25", "Norway"),
}

VAT_PROFILES: dict[str, VatProfile] = {
    **{
        code: VatProfile(code, name, Decimal(rate), refundable=True)
        for code, (rate, name) in _EU_VAT.items()
    },
    **{
        code: VatProfile(code, name, Decimal(rate), refundable=False)
        for code, (rate, name) in _NON_EU_VAT.items()
    },
}

_EUROZONE = (
    "AT BE CY DE EE ES FI FR GR HR IE IT LT LU LV MT NL PT SI SK"
).split()

COUNTRY_CURRENCY: dict[str, str] = {
    **dict.fromkeys(_EUROZONE, "EUR"),
    "BG": "BGN",
    "CZ": "CZK",
    "DK": "DKK",
    "HU": "HUF",
    "PL": "PLN",
    "RO": "RON",
    "SE": "SEK",
    "CH": "CHF",
    "GB": "GBP",
    "NO": "NOK",
    "RS": "RSD",
    "UA": "UAH",
    "MD": "MDL",
    "TR": "TRY",
}

# Country names and non alpha-2 codes, already folded (lowercase, no accents).
_ALIASES: dict[str, str] = {
    "romania": "RO", "rou": "RO", "rom": "RO",
    "bulgaria": "BG", "bgr": "BG",
    "hungary": "HU", "ungaria": "HU", "ungarn": "HU", "magyarorszag": "HU", "hun": "HU",
    "austria": "AT", "osterreich": "AT", "aut": "AT",
    "germany": "DE", "germania": "DE", "deutschland": "DE", "deu": "DE", "ger": "DE",
    "poland": "PL", "polonia": "PL", "polen": "PL", "pol": "PL",
    "czech republic": "CZ", "czechia": "CZ", "cehia": "CZ", "tschechien": "CZ", "cze": "CZ",
    "slovakia": "SK", "slovacia": "SK", "slowakei": "SK", "svk": "SK",
    "slovenia": "SI", "slowenien": "SI", "svn": "SI", "slo": "SI",
    "croatia": "HR", "kroatien": "HR", "hrv": "HR", "cro": "HR",
    "italy": "IT", "italia": "IT", "italien": "IT", "ita": "IT",
    "france": "FR", "franta": "FR", "frankreich": "FR", "fra": "FR",
    "spain": "ES", "spania": "ES", "spanien": "ES", "esp": "ES",
    "portugal": "PT", "prt": "PT",
    "belgium": "BE", "belgia": "BE", "belgien": "BE", "bel": "BE",
    "netherlands": "NL", "olanda": "NL", "niederlande": "NL", "nld": "NL",
    "luxembourg": "LU", "luxemburg": "LU", "lux": "LU",
    "greece": "GR", "grecia": "GR", "griechenland": "GR", "grc": "GR",
    "ireland": "IE", "irlanda": "IE", "irland": "IE", "irl": "IE",
    "denmark": "DK", "danemarca": "DK", "danemark": "DK", "dnk": "DK",
    "sweden": "SE", "suedia": "SE", "schweden": "SE", "swe": "SE",
    "finland": "FI", "finlanda": "FI", "finnland": "FI", "fin": "FI",
    "estonia": "EE", "estland": "EE", "est": "EE",
    "latvia": "LV", "letonia": "LV", "lettland": "LV", "lva": "LV",
    "lithuania": "LT", "lituania": "LT", "litauen": "LT", "ltu": "LT",
    "malta": "MT", "mlt": "MT",
    "cyprus": "CY", "cipru": "CY", "zypern": "CY", "cyp": "CY",
    "serbia": "RS", "serbien": "RS", "srb": "RS",
    "ukraine": "UA", "ucraina": "UA", "ukr": "UA",
    "moldova": "MD", "moldawien": "MD", "mda": "MD",
    "turkey": "TR", "turcia": "TR", "turkei": "TR", "tur": "TR",
    "switzerland": "CH", "elvetia": "CH", "schweiz": "CH", "che": "CH",
    "united kingdom": "GB", "uk": "GB", "great britain": "GB", "gbr": "GB",
    "norway": "NO", "norvegia": "NO", "norwegen": "NO", "nor": "NO",
}


def fold(text: str) -> str:
    """Lowercase, trim and strip diacritics (NFD + combining-mark removal)."""

    decomposed = unicodedata.normalize("NFD", text)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return " ".join(stripped.lower().split())


def get_country_code(name_or_code: str | None) -> str | None:
    """Resolve a country name or code to ISO alpha-2, or ``None`` if unknown."""

    if not name_or_code:
        return None
    folded = fold(str(name_or_code))
    if len(folded) == 2 and folded.upper() in VAT_PROFILES:
        return folded.upper()
    return _ALIASES.get(folded)


def get_vat_profile(country: str | None) -> VatProfile:
    """Return the static VAT profile, or a zero-rate non-refundable one."""

    code = get_country_code(country)
    if code is None:
        return UNKNOWN_VAT
    return VAT_PROFILES[code]


def get_country_currency(country: str | None) -> str | None:
    """Return the local currency of ``country`` or ``None`` when unknown."""

    code = get_country_code(country)
    return COUNTRY_CURRENCY.get(code) if code else None


def list_vat_profiles() -> list[VatProfile]:
    return sorted(VAT_PROFILES.values(), key=lambda p: (not p.refundable, p.country_code or ""))


__all__ = [
    "COUNTRY_CURRENCY",
    "UNKNOWN_VAT",
    "VAT_PROFILES",
    "VatProfile",
    "fold",
    "get_country_code",
    "get_country_currency",
    "get_vat_profile",
    "list_vat_profiles",
]
