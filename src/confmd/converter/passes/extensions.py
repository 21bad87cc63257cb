"""ADF extension pass: ``<ac:adf-extension>`` blocks to text.

Extension blocks wrap content modelled in the Atlassian Document Format.
Attributes and parameters are keyed child elements, e.g.
``<ac:adf-attribute key="panel-type">note</ac:adf-attribute>``; diagram
names hide in nested parameters such as
``<ac:adf-parameter key="diagram-name"><ac:adf-parameter key="value">x</ac:adf-parameter></ac:adf-parameter>``.
"""

from collections.abc import Iterator

from confmd.converter.macro_formatter import format_callout
from confmd.converter.markup import (
    Element,
    ElementIndex,
    ScanContext,
    attribute,
    child_inner,
    find_element,
    replace_elements,
    strip_tags,
)

DIAGRAM_NAME_KEYS = ("diagram-display-name", "diagramDisplayName", "diagram-name", "diagramName")
# Node type of embedded-diagram extensions; bodied and inline extensions carry content
DIAGRAM_NODE_TYPE = "extension"

PANEL_LABELS = {
    "note": "NOTE",
    "info": "INFO",
    "warning": "WARNING",
    "error": "ERROR",
    "success": "SUCCESS",
}

# extension-key fragment -> tool label; anything else is a draw.io diagram
_DIAGRAM_TOOLS = (("gliffy", "Gliffy"), ("lucid", "Lucidchart"))


def _keyed_children(block: str, tag: str, max_steps: int) -> Iterator[tuple[str, str]]:
    """Yield (key, inner) for every ``tag`` element, nested ones included."""
    index = ElementIndex(block, tag, max_steps)
    cursor = 0
    for _ in range(max_steps):
        span = index.find(cursor)
        if span is None or span.truncated:
            return
        # Step into the element rather than past it so nested children are visited
        cursor = span.open_end
        if span.self_closing or not span.closed:
            continue
        key = attribute(block[span.start : span.open_end], "key")
        if key is not None:
            yield key, block[span.open_end : span.inner_end]


def adf_attribute(block: str, key: str, max_steps: int) -> str | None:
    """Return the text of the ``ac:adf-attribute`` with the given key."""
    for found, inner in _keyed_children(block, "ac:adf-attribute", max_steps):
        if found == key:
            return strip_tags(inner).strip()
    return None


def adf_parameter(block: str, key: str, max_steps: int) -> str | None:
    """Return the non-empty value of the ``ac:adf-parameter`` with the given key."""
    for found, inner in _keyed_children(block, "ac:adf-parameter", max_steps):
        if found != key:
            continue
        value = next(
            (v for k, v in _keyed_children(inner, "ac:adf-parameter", max_steps) if k == "value"),
            None,
        )
        if value is None:
            value = child_inner(inner, "ac:adf-parameter-value", max_steps)
        text = strip_tags(value if value is not None else inner).strip()
        if text:
            return text
    return None


def _is_diagram(block: str, max_steps: int) -> bool:
    node = find_element(block, "ac:adf-node", 0, max_steps)
    if node is not None and not node.truncated:
        node_type = attribute(block[node.start : node.open_end], "type")
        if node_type == DIAGRAM_NODE_TYPE:
            return True
    if attribute(block, "extension-type") is not None:
        return True
    return adf_attribute(block, "extension-type", max_steps) is not None


def render_extension(element: Element, max_steps: int) -> str:
    """Render one extension block as a diagram reference, panel or plain text."""
    if not element.closed:
        return ""
    block = element.source

    if _is_diagram(block, max_steps):
        name = next(
            (n for n in (adf_parameter(block, k, max_steps) for k in DIAGRAM_NAME_KEYS) if n),
            None,
        )
        if name:
            extension_key = (adf_attribute(block, "extension-key", max_steps) or "").lower()
            tool = next((label for hint, label in _DIAGRAM_TOOLS if hint in extension_key), "Draw.io")
            return f"[{tool}: {name}]"
        title = adf_attribute(block, "extension-title", max_steps)
        if title:
            return f"[{title}]"
        return "[Embedded Diagram]"

    content = child_inner(block, "ac:adf-content", max_steps)
    if content is not None:
        text = strip_tags(content, line_breaks=True)
        if text:
            panel_type = (adf_attribute(block, "panel-type", max_steps) or "").lower()
            label = PANEL_LABELS.get(panel_type)
            return format_callout(label, text) if label else text

    fallback = child_inner(block, "ac:adf-fallback", max_steps)
    if fallback is not None:
        return strip_tags(fallback, line_breaks=True)

    return ""


class ExtensionPass:
    """Replaces ADF extension blocks with diagram references or panel text."""

    name = "extensions"

    def apply(self, markup: str, context: ScanContext) -> str:
        """Replace every ``<ac:adf-extension>`` element."""
        return replace_elements(
            markup,
            "ac:adf-extension",
            lambda element: render_extension(element, context.max_iterations),
            context,
        )
