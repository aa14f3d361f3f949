"""Provider-specific statement parsers."""

from .provider_a_sheet import parse_provider_a
from .provider_b_sheet import parse_provider_b
from .toll_pdf import extract_pdf_text, parse_toll_pdf, parse_toll_text

__all__ = [
    "extract_pdf_text",
    "parse_provider_a",
    "parse_provider_b",
    "parse_toll_pdf",
    "parse_toll_text",
]
