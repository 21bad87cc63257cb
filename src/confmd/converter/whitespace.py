"""Final Markdown clean-up: undo defensive escaping, tidy blank lines."""

import re

# html2text escapes these even though storage format meant them literally.
# A whole backslash run goes, which keeps the function idempotent.
_ESCAPED_CHAR_RE = re.compile(r"\\+([\[\]*_`#>\-])")


def unescape_markdown(text: str) -> str:
    r"""Turn ``\[ \] \* \_ \` \# \> \-`` back into literal characters."""
    return _ESCAPED_CHAR_RE.sub(r"\1", text)


def normalize_whitespace(text: str) -> str:
    """Collapse runs of blank lines to one and trim blank lines at both ends.

    Lines holding only whitespace count as blank. Other lines are kept as-is.
    """
    lines: list[str] = []
    previous_blank = False

    for line in text.splitlines():
        if not line.strip():
            if not previous_blank:
                lines.append("")
            previous_blank = True
        else:
            lines.append(line)
            previous_blank = False

    while lines and not lines[0]:
        lines.pop(0)
    while lines and not lines[-1]:
        lines.pop()

    return "\n".join(lines)


def finalize(text: str) -> str:
    """Unescape, then normalize whitespace."""
    return normalize_whitespace(unescape_markdown(text))
