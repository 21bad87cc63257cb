"""Main converter module that orchestrates the conversion pipeline."""

import logging
import re

from confmd.config import Settings
from confmd.converter.macro_formatter import MacroFormatter
from confmd.converter.markdown_generator import MarkdownGenerator
from confmd.converter.markup import attribute
from confmd.converter.normalizer import Normalizer
from confmd.converter.placeholders import PlaceholderStore
from confmd.converter.residue import ResidueCleaner
from confmd.converter.whitespace import finalize
from confmd.exceptions import MarkdownGeneratorError
from confmd.logger import logger
from confmd.timing import timeit

_IMG_TAG_RE = re.compile(r"<img\b[^>]*>", re.IGNORECASE)


class Converter:
    """Coordinates normalization, Markdown generation and clean-up.

    Pipeline: storage format -> normalized HTML -> Markdown -> residue
    cleaning -> unescaping and whitespace normalization.
    """

    def __init__(self, settings: Settings) -> None:
        """Initialize the converter with settings.

        Args:
            settings: Application settings containing all configuration.

        """
        self._settings = settings
        self._residue_cleaner = ResidueCleaner(settings)
        self._normalizer = Normalizer(settings, MacroFormatter(settings, self._residue_cleaner))
        self._markdown_generator = MarkdownGenerator(settings)

    @timeit("Storage conversion", logging.DEBUG)
    def convert(self, storage: str) -> str:
        """Convert a storage-format document to Markdown.

        Never raises: if the pipeline fails unexpectedly, the error is logged
        and the input is returned unchanged.

        Args:
            storage: Page body in storage format.

        Returns:
            Markdown text.

        """
        if not storage.strip():
            return ""
        try:
            return self._run_pipeline(storage)
        except Exception:
            logger.exception("Conversion failed, returning input unchanged")
            return storage

    def _protect_images(self, html: str, store: PlaceholderStore) -> str:
        """Swap plain ``<img>`` tags for their alt text placeholder."""
        if not self._settings.converter_image_placeholders:
            return html

        def _replace(match: re.Match[str]) -> str:
            alt = (attribute(match.group(0), "alt") or "").strip()
            return store.protect(f"[Image: {alt}]") if alt else ""

        return _IMG_TAG_RE.sub(_replace, html)

    def _run_pipeline(self, storage: str) -> str:
        """Run the normalization -> markdown -> clean-up pipeline.

        Args:
            storage: Page body in storage format.

        Returns:
            String containing Markdown content.

        """
        store = PlaceholderStore()

        # 1. Replace storage-format elements with HTML and protected fragments
        logger.debug("[NORMALIZATION STARTED] %d characters", len(storage))
        html = self._normalizer.normalize(storage, store)
        html = self._protect_images(html, store)

        # 2. Convert to Markdown, degrading to the normalized text on failure
        logger.debug("[MARKDOWN GENERATION STARTED] %d protected fragments", len(store))
        try:
            markdown = self._markdown_generator.convert(html)
        except MarkdownGeneratorError as e:
            logger.warning("Markdown generation failed, using normalized text: %s", e)
            markdown = html

        markdown = store.restore(markdown, pad_blocks=True)

        # 3. Remove residue and tidy up
        logger.debug("[CLEANUP STARTED]")
        return finalize(self._residue_cleaner.clean(markdown))
