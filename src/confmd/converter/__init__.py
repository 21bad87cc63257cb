"""Storage format to Markdown conversion pipeline."""

from confmd.converter.converter import Converter

__all__ = ["Converter"]
