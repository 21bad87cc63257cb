"""Markdown generation module using Crawl4ai."""

from bs4 import BeautifulSoup
from crawl4ai import DefaultMarkdownGenerator

from confmd.config import Settings
from confmd.exceptions import MarkdownGeneratorError

# crawl4ai reports conversion failures in-band instead of raising
_ERROR_PREFIXES = ("Error converting HTML to markdown:", "Error in markdown generation:")


class MarkdownGenerator:
    """Converts normalized HTML to Markdown using Crawl4AI."""

    def __init__(self, settings: Settings) -> None:
        """Initialize the markdown generator with settings.

        Args:
            settings: Application settings containing markdown generation configuration.

        """
        self._settings = settings
        self._skip_tags = settings.skip_tags()

    def _drop_skipped_tags(self, html: str) -> str:
        """Remove script-like elements together with their content."""
        lowered = html.lower()
        if not any(f"<{tag}" in lowered for tag in self._skip_tags):
            return html

        soup = BeautifulSoup(html, "html.parser")
        for element in soup.find_all(self._skip_tags):
            element.decompose()
        return str(soup)

    def convert(self, html: str) -> str:
        """Convert HTML to Markdown.

        No content filter is applied: every paragraph of a page body is content.

        Args:
            html: Normalized HTML to convert to Markdown.

        Returns:
            String containing Markdown content, possibly empty.

        Raises:
            MarkdownGeneratorError: If MD generation failed.

        """
        markdown_generator = DefaultMarkdownGenerator(
            options={
                "body_width": self._settings.converter_body_width,
                "ignore_emphasis": False,
                "ignore_links": False,
                "ignore_images": False,
                "escape_snob": False,
                "single_line_break": self._settings.converter_single_line_break,
                "mark_code": self._settings.converter_mark_code,
                "protect_links": False,
            },
        )

        try:
            result = markdown_generator.generate_markdown(
                input_html=self._drop_skipped_tags(html),
                citations=False,
            )
        except Exception as e:
            raise MarkdownGeneratorError(f"Markdown generation failed: {e}") from e

        output = str(result.raw_markdown or "")
        if output.startswith(_ERROR_PREFIXES):
            raise MarkdownGeneratorError(output)

        return output
