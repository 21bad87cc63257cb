"""confmd - Confluence storage format to Markdown.

Converts page bodies in storage format (XHTML with ac:/ri: elements)
into readable Markdown, as a library or an MCP server.
"""

from confmd.config import Settings, get_settings
from confmd.converter.converter import Converter

__version__ = "0.1.0"


def convert(storage: str, settings: Settings | None = None) -> str:
    """Convert one storage-format document to Markdown.

    Args:
        storage: Page body in storage format.
        settings: Settings to use; defaults are read from the environment.

    Returns:
        Markdown text, or the input itself if conversion failed.

    """
    return Converter(settings or get_settings()).convert(storage)


__all__ = [
    "Converter",
    "Settings",
    "__version__",
    "convert",
    "get_settings",
]
