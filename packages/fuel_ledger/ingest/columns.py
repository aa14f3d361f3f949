"""Header-row mapping onto canonical field names.

Header wording differs between providers, languages and export versions, so
each canonical field carries an ordered list of known label variants. The
tables live in a versioned JSON file (``seeds/header_variants.v1.json``)
validated with pydantic; new wording is added there without code changes.

Matching rule: labels are compared after :func:`normalize_label`; a header
matches a field when it equals one of the variants or contains one. Headers
are visited in column order and each claims the first not-yet-mapped field
it matches, so the order of fields in the table matters where variants
overlap (e.g. "price per unit" must be listed before "unit").
"""

from __future__ import annotations

import json
import os
from collections.abc import Iterable, Mapping, Sequence
from functools import cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from ..errors import MissingColumnsError
from ..models import Provider
from ..rates.countries import fold

_DEFAULT_SEED = Path(__file__).with_name("seeds") / "header_variants.v1.json"
_ENV_OVERRIDE = "FUEL_LEDGER_HEADER_VARIANTS"


def normalize_label(label: Any) -> str:
    """Trim, lowercase and strip diacritics from a header label."""

    if label is None:
        return ""
    return fold(str(label))


class FieldVariants(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    field: str
    variants: tuple[str, ...]

    @field_validator("variants")
    @classmethod
    def _non_empty(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        cleaned = tuple(s for s in v if normalize_label(s))
        if not cleaned:
            raise ValueError("at least one non-empty variant is required")
        return cleaned


class ProviderColumns(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    required: tuple[str, ...]
    fields: tuple[FieldVariants, ...]

    @model_validator(mode="after")
    def _required_are_known(self) -> ProviderColumns:
        names = [f.field for f in self.fields]
        if len(set(names)) != len(names):
            raise ValueError("duplicate field names in variant table")
        unknown = [r for r in self.required if r not in names]
        if unknown:
            raise ValueError(f"required fields without variants: {', '.join(unknown)}")
        return self

    def as_table(self) -> dict[str, tuple[str, ...]]:
        return {f.field: f.variants for f in self.fields}


class HeaderVariantConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    version: int
    providers: dict[Provider, ProviderColumns]

    def for_provider(self, provider: Provider) -> ProviderColumns:
        try:
            return self.providers[provider]
        except KeyError:
            raise KeyError(f"no header variants configured for {provider}") from None


def load_header_variants(path: str | os.PathLike[str] | None = None) -> HeaderVariantConfig:
    """Load and validate a header-variant file.

    Resolution order: explicit ``path``, ``FUEL_LEDGER_HEADER_VARIANTS``, the
    packaged v1 table.
    """

    resolved = Path(path or os.getenv(_ENV_OVERRIDE) or _DEFAULT_SEED)
    with resolved.open("r", encoding="utf-8") as f:
        data = json.load(f)
    return HeaderVariantConfig.model_validate(data)


@cache
def default_header_variants() -> HeaderVariantConfig:
    return load_header_variants(_DEFAULT_SEED)


def map_headers(
    header_row: Sequence[Any], variant_table: Mapping[str, Iterable[str]]
) -> dict[str, int]:
    """Return ``{field: column_index}`` for every field found in ``header_row``."""

    normalized_table = [
        (field, [normalize_label(v) for v in variants]) for field, variants in variant_table.items()
    ]
    mapping: dict[str, int] = {}
    for index, cell in enumerate(header_row):
        header = normalize_label(cell)
        if not header:
            continue
        for field, variants in normalized_table:
            if field in mapping:
                continue
            if any(header == v or v in header for v in variants if v):
                mapping[field] = index
                break
    return mapping


def require_fields(
    mapping: Mapping[str, int], required: Iterable[str], header_row: Sequence[Any]
) -> None:
    """Raise :class:`MissingColumnsError` when a required field is unmapped."""

    missing = [f for f in required if f not in mapping]
    if missing:
        raise MissingColumnsError(missing, [str(h) for h in header_row if h is not None])


def score_header_row(row: Sequence[Any], columns: ProviderColumns) -> int:
    """Number of required fields a candidate header row satisfies."""

    mapping = map_headers(row, columns.as_table())
    return sum(1 for f in columns.required if f in mapping)


__all__ = [
    "FieldVariants",
    "HeaderVariantConfig",
    "ProviderColumns",
    "default_header_variants",
    "load_header_variants",
    "map_headers",
    "normalize_label",
    "require_fields",
    "score_header_row",
]
