"""Storage-format normalization module."""

from confmd.config import Settings
from confmd.converter.macro_formatter import MacroFormatter
from confmd.converter.markup import ScanContext
from confmd.converter.passes.emoticons import EmoticonPass
from confmd.converter.passes.extensions import ExtensionPass
from confmd.converter.passes.images import ImagePass
from confmd.converter.passes.links import LinkPass
from confmd.converter.passes.macros import MacroPass
from confmd.converter.passes.residual_tags import ResidualTagPass
from confmd.converter.passes.tasks import TaskListPass
from confmd.converter.placeholders import PlaceholderStore
from confmd.converter.protocols import MarkupPass
from confmd.logger import logger


class Normalizer:
    """Rewrites storage-format elements into HTML the generic converter understands.

    Runs every pass once, in a fixed order: links, images and macros must be
    resolved before the residual pass strips the tags that carry their meaning.
    """

    def __init__(self, settings: Settings, formatter: MacroFormatter | None = None) -> None:
        """Initialize the normalizer with settings.

        Args:
            settings: Application settings containing scanning limits.
            formatter: Macro formatter to use; built from settings when omitted.

        """
        self._settings = settings
        self._passes = self._initialize_passes(formatter or MacroFormatter(settings))

    def _initialize_passes(self, formatter: MacroFormatter) -> list[MarkupPass]:
        """Initialize normalizer passes in execution order.

        Returns:
            List of MarkupPass instances to apply.

        """
        return [
            EmoticonPass(),
            ImagePass(),
            LinkPass(),
            MacroPass(formatter),
            TaskListPass(),
            ExtensionPass(),
            ResidualTagPass(),
        ]

    @property
    def pass_names(self) -> list[str]:
        """Names of the passes in execution order."""
        return [markup_pass.name for markup_pass in self._passes]

    def normalize(self, markup: str, store: PlaceholderStore | None = None) -> str:
        """Apply all passes in order.

        Args:
            markup: Storage-format markup.
            store: When given, rendered fragments are protected behind tokens
                so they survive HTML to Markdown conversion untouched.

        Returns:
            Markup with no ``ac:`` / ``ri:`` elements left.

        """
        context = ScanContext(self._settings.scan_max_iterations, store)
        for markup_pass in self._passes:
            markup = markup_pass.apply(markup, context)
            logger.debug("Pass '%s' done, %d characters", markup_pass.name, len(markup))
        return markup
