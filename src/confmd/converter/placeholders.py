"""Placeholder substitution for fragments that must survive HTML conversion.

Rendered Markdown (code fences, task lists, blockquotes) would be mangled
by the HTML to Markdown converter, which collapses whitespace and escapes
line-leading markers. Such fragments are swapped for opaque alphanumeric
tokens before conversion and swapped back afterwards.
"""

import re
import uuid

_BLOCK_PREFIXES = ("> ", "- [", "```")

_TABLE_ROW_RE = re.compile(r"^\s*\|")
# Leading quote markers and list item marker of a Markdown line
_LINE_PREFIX_RE = re.compile(r"^(?P<lead>[ \t]*(?:>[ \t]?)*)(?P<marker>(?:[*+-]|\d+[.)])[ \t]+)?")


def is_block(fragment: str) -> bool:
    """Return True if the fragment must start on its own line."""
    return "\n" in fragment or fragment.startswith(_BLOCK_PREFIXES)


class PlaceholderStore:
    """Per-conversion registry of protected fragments.

    Tokens carry a random nonce so text that happens to look like a token
    in the source document is never substituted.
    """

    def __init__(self) -> None:
        """Initialize an empty store with a fresh token nonce."""
        self._nonce = uuid.uuid4().hex[:8].upper()
        self._fragments: list[str] = []
        self._token_re = re.compile(rf"CONFMD{self._nonce}P(\d+)E")

    def __len__(self) -> int:
        return len(self._fragments)

    def protect(self, fragment: str) -> str:
        """Register a fragment and return the token standing in for it.

        Args:
            fragment: Rendered Markdown to protect.

        Returns:
            Token to splice into the working text, or the fragment itself
            when it is empty.

        """
        if not fragment:
            return fragment
        self._fragments.append(fragment)
        return f"CONFMD{self._nonce}P{len(self._fragments) - 1}E"

    def restore(self, text: str, *, pad_blocks: bool = False) -> str:
        """Replace every token in text with its fragment.

        Args:
            text: Text possibly containing tokens.
            pad_blocks: Treat text as Markdown and fit block fragments to the
                line they land on: a table row gets the fragment on one line
                joined with ``<br>``, a list item or quote gets it indented
                under the item, and a top-level paragraph gets it as its own
                block between blank lines.

        Returns:
            Text with known tokens substituted. Unknown tokens are kept.

        """
        if not self._fragments:
            return text
        if not pad_blocks:
            return self._token_re.sub(self._lookup, text)
        return "\n".join(self._restore_line(line) for line in text.split("\n"))

    def _lookup(self, match: re.Match[str]) -> str:
        index = int(match.group(1))
        if index >= len(self._fragments):
            return match.group(0)
        return self._fragments[index]

    def _restore_line(self, line: str) -> str:
        if self._token_re.search(line) is None:
            return line

        if _TABLE_ROW_RE.match(line):
            return self._token_re.sub(lambda m: self._lookup(m).replace("\n", "<br>"), line)

        prefix = _LINE_PREFIX_RE.match(line)
        lead = prefix.group("lead")
        marker = prefix.group("marker") or ""
        continuation = lead + " " * len(marker)
        nested = bool(marker) or ">" in lead or len(lead) >= 2

        def _substitute(match: re.Match[str]) -> str:
            fragment = self._lookup(match)
            if not is_block(fragment):
                return fragment
            if not nested:
                return f"\n\n{fragment}\n\n"

            block = f"\n{continuation}".join(fragment.split("\n"))
            if line[prefix.end() : match.start()].strip():
                block = f"\n{continuation}{block}"
            if line[match.end() :].strip():
                block = f"{block}\n{continuation}"
            return block

        return self._token_re.sub(_substitute, line)
