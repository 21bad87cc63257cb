"""Image pass: ``<ac:image>`` to readable image references."""

from confmd.converter.markup import Element, ScanContext, attribute, replace_elements


def render_image(element: Element) -> str:
    """Render an image from its attachment, URL or alt text, in that order."""
    if not element.closed and not element.self_closing:
        # Closer missing: strip the opening tag, its children stay for later passes
        return ""

    block = element.source

    filename = attribute(block, "ri:filename")
    if filename is not None:
        return f"[Image: {filename}]"

    url = attribute(block, "ri:value")
    if url is not None:
        return f"![Image]({url})"

    alt = attribute(element.opening_tag, "ac:alt")
    if alt:
        return f"[Image: {alt}]"

    return "[Image]"


class ImagePass:
    """Replaces embedded images and attachments with text references."""

    name = "images"

    def apply(self, markup: str, context: ScanContext) -> str:
        """Replace every ``<ac:image>`` element."""
        return replace_elements(markup, "ac:image", render_image, context)
