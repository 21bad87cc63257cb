"""Residue filter for removing storage-format leftovers from converted Markdown."""

import re

from confmd.config import Settings
from confmd.logger import logger

# Editor bookkeeping that sometimes leaks as text, e.g. ac:macro-id="..."
_BOOKKEEPING_ATTR_RE = re.compile(
    r"""(?<![\w:-])(?:(?:ac|ri):[\w-]+|data-macro-[\w-]+|data-layout|data-local-id|local-id)"""
    r"""\s*=\s*(?:"[^"]*"|'[^']*')"""
)
_CUSTOM_TAG_RE = re.compile(r"</?(?:ac|ri):[^<>]*>")
# Any run of '<' and '/' in front of an ac:/ri: prefix, so no marker can re-form
_DANGLING_MARKER_RE = re.compile(r"<[</]*(?=(?:ac|ri):)")


class ResidueCleaner:
    """Removes binary and bookkeeping residue that survives conversion.

    Three kinds of residue are removed, in order: diagram model XML,
    opaque base64-like runs, and leaked macro bookkeeping.
    """

    def __init__(self, settings: Settings) -> None:
        """Initialize the residue cleaner.

        Args:
            settings: Application settings with the run length threshold
                and diagram XML root names.

        """
        self._long_run_re = re.compile(rf"\S{{{settings.residue_min_run_length},}}")
        self._xml_patterns = [
            pattern
            for root in settings.xml_roots()
            for pattern in self._xml_root_patterns(re.escape(root))
        ]

    @staticmethod
    def _xml_root_patterns(root: str) -> list[re.Pattern[str]]:
        """Patterns for one root: whole element, entity-escaped element, stray tags."""
        return [
            re.compile(rf"<{root}\b.*?</{root}\s*>", re.DOTALL),
            re.compile(rf"&lt;{root}\b.*?&lt;/{root}\s*&gt;", re.DOTALL),
            re.compile(rf"</?{root}\b[^<>]*>"),
        ]

    def clean(self, markdown: str) -> str:
        """Remove residue from Markdown.

        Args:
            markdown: Converted Markdown.

        Returns:
            Markdown without diagram XML, long opaque runs or bookkeeping.

        """
        text = self._remove_diagram_xml(markdown)
        text = self._remove_long_runs(text)
        return self._remove_bookkeeping(text)

    def _remove_diagram_xml(self, text: str) -> str:
        for pattern in self._xml_patterns:
            text = pattern.sub("", text)
        return text

    def _remove_long_runs(self, text: str) -> str:
        text, removed = self._long_run_re.subn("", text)
        if removed:
            logger.debug("ResidueCleaner removed %d opaque runs", removed)
        return text

    def _remove_bookkeeping(self, text: str) -> str:
        text = _BOOKKEEPING_ATTR_RE.sub("", text)
        text = _CUSTOM_TAG_RE.sub("", text)
        return _DANGLING_MARKER_RE.sub("", text)
