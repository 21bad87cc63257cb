"""Macro pass: hands every macro instance to the MacroFormatter."""

from confmd.converter.macro_formatter import MACRO_TAGS, MacroFormatter
from confmd.converter.markup import Element, ScanContext, replace_elements


class MacroPass:
    """Replaces structured macros, self-closing or paired, with their rendering."""

    name = "macros"

    def __init__(self, formatter: MacroFormatter) -> None:
        """Initialize the pass.

        Args:
            formatter: Formatter rendering each macro instance.

        """
        self._formatter = formatter

    def apply(self, markup: str, context: ScanContext) -> str:
        """Replace every macro element.

        An opening tag without a closer is dropped; its parameters and body
        are left for the residual tag pass.
        """

        def render(element: Element) -> str:
            if not element.closed:
                return ""
            return self._formatter.format_macro(element.source)

        for tag in MACRO_TAGS:
            markup = replace_elements(markup, tag, render, context)
        return markup
