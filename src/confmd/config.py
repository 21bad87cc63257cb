"""Application configuration using Pydantic Settings.

Environment variables are automatically mapped to Settings fields.
"""

from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Every field has a default, so the converter works without any
    environment. Invalid values fail early with clear error messages.
    """

    # --- Diagnostics ---
    confmd_debug: bool = False

    # --- Markup scanning ---
    scan_max_iterations: int = 1000
    macro_max_depth: int = 8

    # --- Residue cleaning ---
    residue_min_run_length: int = 500
    residue_xml_roots: str = "mxGraphModel,mxfile"

    # --- Crawl4AI Markdown Generation ---
    converter_skip_tags: str = "script,style,meta,noscript"
    converter_body_width: int = 0
    converter_single_line_break: bool = False
    converter_mark_code: bool = False
    converter_image_placeholders: bool = True

    # --- Network Interface ---
    host: str = "0.0.0.0"
    port: int = 8000
    max_document_chars: int = 5_000_000

    @model_validator(mode="after")
    def validate_limits(self) -> "Settings":
        """Validate scanning and cleaning limits.

        Raises:
            ValueError: If a limit is not a positive integer

        """
        if self.scan_max_iterations < 1:
            msg = "SCAN_MAX_ITERATIONS must be a positive integer"
            raise ValueError(msg)
        if self.macro_max_depth < 1:
            msg = "MACRO_MAX_DEPTH must be a positive integer"
            raise ValueError(msg)
        if self.max_document_chars < 1:
            msg = "MAX_DOCUMENT_CHARS must be a positive integer"
            raise ValueError(msg)
        if self.residue_min_run_length < 1:
            msg = "RESIDUE_MIN_RUN_LENGTH must be a positive integer"
            raise ValueError(msg)
        return self

    # --- Tool Metadata ---
    # Tool descriptions are stored here so they can be updated via environment
    # variables without code changes.
    tool_storage_to_markdown_desc: str = (
        "Convert a Confluence page body in storage format (XHTML with ac:/ri: "
        "elements) to Markdown.\n\n"
        "Macros, mentions, images, task lists and panels are rendered as "
        "readable Markdown."
    )
    tool_storage_batch_to_markdown_desc: str = (
        "Convert several Confluence storage-format bodies to Markdown.\n\n"
        "Takes a mapping of document id to storage markup and returns a "
        "mapping of document id to Markdown."
    )

    # Tool argument descriptions
    arg_storage_desc: str = "Page body in Confluence storage format"
    arg_documents_desc: str = "Mapping of document id to storage-format body"

    def skip_tags(self) -> list[str]:
        """Return the tag names the generic converter must drop with their content."""
        return [t.strip().lower() for t in self.converter_skip_tags.split(",") if t.strip()]

    def xml_roots(self) -> list[str]:
        """Return the diagram-model XML root element names treated as residue."""
        return [r.strip() for r in self.residue_xml_roots.split(",") if r.strip()]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance.

    Uses lru_cache to ensure the .env file is only parsed once. Callers
    pass the returned instance explicitly to the components they build.

    Returns:
        Settings instance with application configuration.

    Raises:
        ValidationError: If environment variables hold invalid values.

    """
    return Settings()
