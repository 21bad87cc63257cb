"""confmd custom exceptions."""


class ConfmdError(Exception):
    """Base exception for all confmd errors."""


class ConversionError(ConfmdError):
    """Errors while converting storage format to Markdown."""


class MarkdownGeneratorError(ConversionError):
    """Errors while generating Markdown output from normalized HTML."""


class DocumentTooLargeError(ConfmdError):
    """A submitted document exceeds the configured size limit."""
