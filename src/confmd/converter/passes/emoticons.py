"""Emoticon pass: ``<ac:emoticon>`` to text shortcuts."""

from types import MappingProxyType

from confmd.converter.markup import Element, ScanContext, attribute, replace_elements

EMOTICONS = MappingProxyType({
    "smile": ":)",
    "smiley": ":)",
    "sad": ":(",
    "wink": ";)",
    "laugh": ":D",
    "thumbs-up": "(y)",
    "thumbs-down": "(n)",
    "tick": "[x]",
    "check": "[x]",
    "cross": "[!]",
    "error": "[!]",
    "warning": "[!]",
    "information": "(i)",
    "info": "(i)",
    "question": "(?)",
    "light-on": "(!)",
    "idea": "(!)",
    "star": "(*)",
    "heart": "<3",
})


def render_emoticon(element: Element) -> str:
    """Map one emoticon to its shortcut; unknown names pass through verbatim."""
    tag = element.opening_tag
    name = attribute(tag, "ac:name")
    if name is not None:
        return EMOTICONS.get(name, name)
    # Emoji picker output carries no ac:name
    return attribute(tag, "ac:emoji-fallback") or attribute(tag, "ac:emoji-shortname") or ""


class EmoticonPass:
    """Replaces emoticons with fixed text shortcuts."""

    name = "emoticons"

    def apply(self, markup: str, context: ScanContext) -> str:
        """Replace every ``<ac:emoticon>``, self-closing or paired."""
        return replace_elements(markup, "ac:emoticon", render_emoticon, context)
