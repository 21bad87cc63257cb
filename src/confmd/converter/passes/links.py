"""Link pass: ``<ac:link>`` to Markdown links and mentions.

A link is a composite element: one resource identifier (``ri:page``,
``ri:user``, ``ri:attachment``, ``ri:url``) or an ``ac:anchor`` attribute
gives the target, and an optional body gives the display text.
"""

from confmd.converter.markup import (
    Element,
    ScanContext,
    attribute,
    child_inner,
    find_opening,
    remove_elements,
    replace_elements,
    plain_text,
    strip_tags,
)

_BODY_TAGS = ("ac:link-body", "ac:plain-text-link-body")


def _display_text(block: str, max_steps: int) -> str | None:
    rich = child_inner(block, "ac:link-body", max_steps)
    if rich is not None:
        text = strip_tags(rich).strip()
        if text:
            return text

    plain = child_inner(block, "ac:plain-text-link-body", max_steps)
    if plain is not None:
        text = plain_text(plain).strip()
        if text:
            return text

    return attribute(block, "ri:content-title")


def _target(descriptor: str) -> str | None:
    if find_opening(descriptor, "ri:page") != -1:
        title = attribute(descriptor, "ri:content-title")
        if title is None:
            return None
        space = attribute(descriptor, "ri:space-key")
        return f"page:{space}/{title}" if space else f"page:{title}"

    if find_opening(descriptor, "ri:user") != -1:
        user_id = attribute(descriptor, "ri:account-id") or attribute(descriptor, "ri:userkey")
        return f"@{user_id}" if user_id else None

    if find_opening(descriptor, "ri:attachment") != -1:
        filename = attribute(descriptor, "ri:filename")
        return f"attachment:{filename}" if filename else None

    if find_opening(descriptor, "ri:url") != -1:
        return attribute(descriptor, "ri:value")

    anchor = attribute(descriptor, "ac:anchor")
    if anchor:
        return f"#{anchor}"

    return None


class LinkPass:
    """Replaces page links, user mentions and attachment links."""

    name = "links"

    def apply(self, markup: str, context: ScanContext) -> str:
        """Replace every ``<ac:link>`` element."""
        max_steps = context.max_iterations

        def render(element: Element) -> str:
            if not element.closed:
                return ""
            if element.self_closing:
                # A self-closing link has neither target child nor body
                anchor = attribute(element.opening_tag, "ac:anchor")
                return f"[#{anchor}](#{anchor})" if anchor else ""
            return self.render_link(element.source, max_steps)

        return replace_elements(markup, "ac:link", render, context)

    def render_link(self, block: str, max_steps: int) -> str:
        """Render one complete link block.

        Args:
            block: ``<ac:link>`` through ``</ac:link>``.
            max_steps: Iteration cap for nested lookups.

        Returns:
            ``[text](target)``, bare text, ``[target](target)`` or empty.

        """
        descriptor = block
        for tag in _BODY_TAGS:
            descriptor = remove_elements(descriptor, tag, max_steps)

        text = _display_text(block, max_steps)
        target = _target(descriptor)

        if text and target:
            return f"[{text}]({target})"
        if text:
            return text
        if target:
            return f"[{target}]({target})"
        return ""
