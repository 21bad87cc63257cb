"""Protocol definitions for the converter package.

Contains structural typing protocols that define interfaces for
converter components, enabling better type checking and extensibility.
"""

from typing import Protocol

from confmd.converter.markup import ScanContext


class MarkupPass(Protocol):
    """Protocol defining the interface for normalizer passes.

    A pass rewrites one class of storage-format element into text the
    generic HTML converter can handle.

    Implementations should:
    - Replace every instance they recognize in a single forward sweep
    - Leave unrelated text byte-for-byte unchanged
    - Never raise on malformed markup
    """

    name: str

    def apply(self, markup: str, context: ScanContext) -> str:
        """Apply the pass to the working text.

        Args:
            markup: Working text of the current conversion.
            context: Scan state shared by all passes of this call.

        Returns:
            The rewritten text.

        """
        ...
