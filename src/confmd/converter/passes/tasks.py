"""Task list pass: ``<ac:task-list>`` to Markdown checklists."""

from confmd.converter.markup import (
    DEFAULT_MAX_ITERATIONS,
    Element,
    ElementIndex,
    ScanContext,
    child_inner,
    replace_elements,
    strip_tags,
)


def render_task(task: str, max_steps: int = DEFAULT_MAX_ITERATIONS) -> str:
    """Render one ``<ac:task>`` block as a checklist line."""
    status = child_inner(task, "ac:task-status", max_steps)
    marker = "[x]" if status is not None and status.strip() == "complete" else "[ ]"
    body = child_inner(task, "ac:task-body", max_steps) or ""
    text = " ".join(strip_tags(body).split())
    return f"- {marker} {text}".rstrip()


def render_task_list(element: Element, max_steps: int = DEFAULT_MAX_ITERATIONS) -> str:
    """Render every task of a list, one line each, in document order."""
    if not element.closed:
        return ""

    inner = element.inner
    index = ElementIndex(inner, "ac:task", max_steps)
    items: list[str] = []
    cursor = 0
    for _ in range(max_steps):
        span = index.find(cursor)
        if span is None or span.truncated or not span.closed:
            break
        items.append(render_task(inner[span.start : span.end], max_steps))
        cursor = span.end
    return "\n".join(items)


class TaskListPass:
    """Replaces task lists with ``- [ ]`` / ``- [x]`` lines."""

    name = "tasks"

    def apply(self, markup: str, context: ScanContext) -> str:
        """Replace every ``<ac:task-list>`` element."""
        return replace_elements(
            markup,
            "ac:task-list",
            lambda element: render_task_list(element, context.max_iterations),
            context,
        )
