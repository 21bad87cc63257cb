"""Residual tag pass: last sweep over whatever storage-format markup is left."""

import re

from confmd.converter.markup import ScanContext, replace_elements
from confmd.logger import logger

# Containers whose content is editor bookkeeping, never page text
BOOKKEEPING_TAGS = ("ac:parameter", "ac:adf-parameter", "ac:adf-parameter-value", "ac:placeholder")

_CUSTOM_TAG_RE = re.compile(r"""</?(?:ac|ri):(?:[^<>"']|"[^"<]*"|'[^'<]*')*>""")
# Same, for tags with an unbalanced quote
_BARE_CUSTOM_TAG_RE = re.compile(r"</?(?:ac|ri):[^<>]*>")
# Tag heads cut off before their '>', up to the next tag or the end of text
_DANGLING_TAG_RE = re.compile(r"<[</]*(?:ac|ri):[^<>]*")


class ResidualTagPass:
    """Drops bookkeeping containers, then unwraps every other ac:/ri: tag."""

    name = "residual_tags"

    def apply(self, markup: str, context: ScanContext) -> str:
        """Remove bookkeeping elements with their content and strip remaining tags.

        Text enclosed by unknown ``ac:`` / ``ri:`` elements is preserved.
        """
        for tag in BOOKKEEPING_TAGS:
            markup = replace_elements(markup, tag, lambda _: "", context)

        markup, removed = _CUSTOM_TAG_RE.subn("", markup)
        markup, bare = _BARE_CUSTOM_TAG_RE.subn("", markup)
        markup, dangling = _DANGLING_TAG_RE.subn("", markup)
        if removed or bare or dangling:
            logger.debug(
                "Residual tag pass stripped %d storage-format tags, %d cut off",
                removed + bare,
                dangling,
            )
        return markup
