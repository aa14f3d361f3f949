"""Statement ingestion: file reading, header mapping and provider parsers."""

from .utils import detect_provider, get_parser, parse_statement

__all__ = ["detect_provider", "get_parser", "parse_statement"]
