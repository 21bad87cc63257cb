"""Macro formatting: one ``ac:structured-macro`` instance to Markdown."""

import re
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from confmd.config import Settings
from confmd.converter.markup import (
    Element,
    ElementIndex,
    ScanContext,
    attribute,
    child_inner,
    find_opening,
    find_tag_end,
    plain_text,
    remove_elements,
    replace_elements,
    strip_tags,
)
from confmd.converter.passes.tasks import render_task_list
from confmd.converter.placeholders import PlaceholderStore
from confmd.converter.residue import ResidueCleaner

# Current storage format uses structured-macro, older pages still carry ac:macro
MACRO_TAGS = ("ac:structured-macro", "ac:macro")

_STATUS_INDICATORS = {
    "green": "[OK]",
    "yellow": "[WARN]",
    "red": "[ERR]",
    "blue": "[INFO]",
}
_SUMMARY_KEYS = ("title", "name", "key", "url")
_EXCESS_BLANK_LINES_RE = re.compile(r"\n{3,}")


class MacroKind(Enum):
    """Macro names with a dedicated rendering."""

    CODE = "code"
    NOFORMAT = "noformat"
    INFO = "info"
    NOTE = "note"
    WARNING = "warning"
    TIP = "tip"
    ERROR = "error"
    TOC = "toc"
    EXPAND = "expand"
    ANCHOR = "anchor"
    JIRA = "jira"
    STATUS = "status"
    DRAWIO = "drawio"
    GLIFFY = "gliffy"
    LUCIDCHART = "lucidchart"
    MIRO = "miro"
    PLANTUML = "plantuml"
    CHILDREN = "children"
    PAGETREE = "pagetree"
    RECENTLY_UPDATED = "recently-updated"
    WIDGET = "widget"
    IFRAME = "iframe"
    HTML = "html"
    UNKNOWN = ""

    @classmethod
    def from_name(cls, name: str) -> "MacroKind":
        """Classify a macro name; matching is exact and case-sensitive."""
        try:
            return cls(name)
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class Macro:
    """A parsed macro instance."""

    name: str
    parameters: dict[str, str] = field(default_factory=dict)
    body: str = ""

    @property
    def kind(self) -> MacroKind:
        return MacroKind.from_name(self.name)

    def param(self, *keys: str) -> str:
        """Return the first non-empty parameter among keys, else an empty string."""
        for key in keys:
            value = self.parameters.get(key)
            if value:
                return value
        return ""


def format_callout(label: str, text: str) -> str:
    """Render a labelled blockquote; every body line stays inside the quote."""
    first, *rest = text.split("\n") if text else [""]
    lines = [f"> **{label}**: {first}".rstrip()]
    lines.extend(f"> {line}".rstrip() for line in rest)
    return "\n".join(lines)


def fenced(language: str, code: str) -> str:
    """Render a fenced code block."""
    return f"```{language}\n{code}\n```"


class MacroFormatter:
    """Maps macro instances to their Markdown rendering.

    Dispatch goes through MacroKind; names without a dedicated rendering
    fall back to their body or a ``[Macro: name]`` summary.
    """

    def __init__(self, settings: Settings, residue_cleaner: ResidueCleaner | None = None) -> None:
        """Initialize the formatter with settings.

        Args:
            settings: Application settings with scanning limits.
            residue_cleaner: Cleaner applied to macro bodies; built from
                settings when omitted.

        """
        self._max_iterations = settings.scan_max_iterations
        self._max_depth = settings.macro_max_depth
        self._residue_cleaner = residue_cleaner or ResidueCleaner(settings)
        self._renderers: dict[MacroKind, Callable[[Macro], str]] = {
            MacroKind.CODE: self._format_code,
            MacroKind.NOFORMAT: self._format_code,
            MacroKind.INFO: self._format_panel,
            MacroKind.NOTE: self._format_panel,
            MacroKind.WARNING: self._format_panel,
            MacroKind.TIP: self._format_panel,
            MacroKind.ERROR: self._format_panel,
            MacroKind.TOC: lambda _: "",
            MacroKind.EXPAND: self._format_expand,
            MacroKind.ANCHOR: self._format_anchor,
            MacroKind.JIRA: self._format_jira,
            MacroKind.STATUS: self._format_status,
            MacroKind.DRAWIO: self._format_drawio,
            MacroKind.GLIFFY: self._format_gliffy,
            MacroKind.LUCIDCHART: self._format_lucidchart,
            MacroKind.MIRO: self._format_miro,
            MacroKind.PLANTUML: self._format_plantuml,
            MacroKind.CHILDREN: self._format_children,
            MacroKind.PAGETREE: lambda _: "[Page Tree]",
            MacroKind.RECENTLY_UPDATED: lambda _: "[Recently Updated]",
            MacroKind.WIDGET: self._format_embed,
            MacroKind.IFRAME: self._format_embed,
            MacroKind.HTML: self._format_embed,
            MacroKind.UNKNOWN: self._format_unknown,
        }

    def format_macro(self, block: str, depth: int = 0) -> str:
        """Render one macro instance.

        Args:
            block: The macro's source span, self-closing or paired.
            depth: Nesting level of this macro inside other macro bodies.

        Returns:
            Markdown for the macro; empty for always-hidden macros such as toc.

        """
        macro = self.parse(block, depth)
        return self._renderers[macro.kind](macro)

    def parse(self, block: str, depth: int = 0) -> Macro:
        """Extract name, parameters and body from a macro span."""
        tag_end = find_tag_end(block, 0)
        opening = block if tag_end == -1 else block[: tag_end + 1]
        name = attribute(opening, "ac:name") or ""
        return Macro(name, self._parameters(block), self._body(block, depth))

    def _parameters(self, block: str) -> dict[str, str]:
        """Collect the macro's own parameters; duplicate keys keep the last value."""
        own = block
        for tag in ("ac:rich-text-body", "ac:plain-text-body"):
            own = remove_elements(own, tag, self._max_iterations)

        parameters: dict[str, str] = {}
        index = ElementIndex(own, "ac:parameter", self._max_iterations)
        cursor = 0
        for _ in range(self._max_iterations):
            span = index.find(cursor)
            if span is None or span.truncated:
                break
            cursor = span.end
            if span.self_closing or not span.closed:
                continue
            key = attribute(own[span.start : span.open_end], "ac:name") or ""
            parameters[key] = strip_tags(own[span.open_end : span.inner_end]).strip()
        return parameters

    def _body(self, block: str, depth: int) -> str:
        rich = child_inner(block, "ac:rich-text-body", self._max_iterations)
        if rich is not None:
            return self._residue_cleaner.clean(self._resolve_rich_body(rich, depth))

        plain = child_inner(block, "ac:plain-text-body", self._max_iterations)
        if plain is not None:
            return self._residue_cleaner.clean(plain_text(plain))

        return ""

    def _resolve_rich_body(self, body: str, depth: int) -> str:
        """Reduce a rich-text body to text, rendering nested macros and task lists.

        Past the configured nesting depth, nested elements are only tag-stripped.
        """
        if depth + 1 >= self._max_depth or not self._has_nested_content(body):
            return strip_tags(body, line_breaks=True)

        store = PlaceholderStore()
        context = ScanContext(self._max_iterations, store)

        def render_nested(element: Element) -> str:
            if not element.closed:
                return ""
            return self.format_macro(element.source, depth + 1)

        for tag in MACRO_TAGS:
            body = replace_elements(body, tag, render_nested, context)
        body = replace_elements(
            body,
            "ac:task-list",
            lambda element: render_task_list(element, self._max_iterations),
            context,
        )

        text = store.restore(strip_tags(body, line_breaks=True), pad_blocks=True)
        return _EXCESS_BLANK_LINES_RE.sub("\n\n", text).strip()

    @staticmethod
    def _has_nested_content(body: str) -> bool:
        return any(find_opening(body, tag) != -1 for tag in (*MACRO_TAGS, "ac:task-list"))

    # --- Renderers ---

    def _format_code(self, macro: Macro) -> str:
        code = macro.body.strip("\r\n").rstrip()
        title = macro.param("title")
        block = fenced(macro.param("language"), code)
        return f"**{title}**\n{block}" if title else block

    def _format_panel(self, macro: Macro) -> str:
        label = macro.name.upper()
        title = macro.param("title")
        if title:
            label = f"{label} - {title}"
        return format_callout(label, macro.body.strip())

    def _format_expand(self, macro: Macro) -> str:
        title = macro.param("title") or "Details"
        content = macro.body.strip()
        return f"**{title}**\n\n{content}" if content else f"**{title}**"

    def _format_anchor(self, macro: Macro) -> str:
        name = macro.param("", "name")
        return f'<a id="{name}"></a>' if name else ""

    def _format_jira(self, macro: Macro) -> str:
        key = macro.param("key") or "JIRA"
        server = macro.param("server", "serverId")
        return f"[{key}]({server})" if server else f"[JIRA: {key}]"

    def _format_status(self, macro: Macro) -> str:
        title = macro.param("title") or "STATUS"
        colour = macro.param("colour", "color").lower()
        indicator = _STATUS_INDICATORS.get(colour, "[STATUS]")
        return f"{indicator} {title.upper()}"

    def _format_drawio(self, macro: Macro) -> str:
        name = macro.param("diagramName", "diagramDisplayName") or "diagram"
        return f"[Draw.io: {name}]"

    def _format_gliffy(self, macro: Macro) -> str:
        name = macro.param("name", "displayName") or "diagram"
        return f"[Gliffy: {name}]"

    def _format_lucidchart(self, macro: Macro) -> str:
        document_id = macro.param("documentId")
        if document_id:
            return f"[Lucidchart](https://lucid.app/documents/view/{document_id})"
        return "[Lucidchart]"

    def _format_miro(self, macro: Macro) -> str:
        board_id = macro.param("boardId")
        if board_id:
            return f"[Miro](https://miro.com/app/board/{board_id})"
        return "[Miro Board]"

    def _format_plantuml(self, macro: Macro) -> str:
        source = macro.body.strip()
        return fenced("plantuml", source) if source else "[PlantUML Diagram]"

    def _format_children(self, macro: Macro) -> str:
        return f"[Child Pages (depth: {macro.param('depth') or '1'})]"

    def _format_embed(self, macro: Macro) -> str:
        target = macro.param("url", "src", "name")
        return f"[Embed: {target}]" if target else "[Embedded Content]"

    def _format_unknown(self, macro: Macro) -> str:
        body = macro.body.strip()
        if len(body) > 3:
            return body

        summary = [
            f"{key}={value}"
            for key, value in macro.parameters.items()
            if key in _SUMMARY_KEYS and value
        ]
        if summary:
            return f"[Macro: {macro.name} ({', '.join(summary)})]"
        return f"[Macro: {macro.name}]"
