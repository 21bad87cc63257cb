"""MCP server exposing Confluence storage format to Markdown conversion."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Annotated, Any

from fastmcp import Context, FastMCP
from fastmcp.exceptions import ToolError

from confmd.config import Settings, get_settings
from confmd.converter.converter import Converter
from confmd.exceptions import ConfmdError, DocumentTooLargeError
from confmd.logger import logger, setup_logging
from confmd.timing import timeit


class TypedFastMCP(FastMCP):
    """Typed FastMCP subclass with server state attribute.

    This allows proper type checking for the state attribute
    instead of using type: ignore comments.
    """

    state: "ServerState | None"

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        """Initialize TypedFastMCP with state set to None."""
        super().__init__(*args, **kwargs)
        self.state = None


class ServerState:
    """Holds the converter shared by all tool calls."""

    def __init__(self, settings: Settings) -> None:
        """Initialize the server state.

        Args:
            settings: Application settings used to build the converter.

        """
        self._max_document_chars = settings.max_document_chars
        self.converter = Converter(settings)

    def _check_size(self, storage: str) -> None:
        if len(storage) > self._max_document_chars:
            msg = (
                f"Document has {len(storage)} characters, "
                f"limit is {self._max_document_chars}"
            )
            raise DocumentTooLargeError(msg)

    async def convert(self, storage: str) -> str:
        """Convert one document in a worker thread.

        Raises:
            DocumentTooLargeError: If the document exceeds the size limit.

        """
        self._check_size(storage)
        return await asyncio.to_thread(self.converter.convert, storage)

    async def convert_batch(self, documents: dict[str, str], ctx: Context) -> dict[str, str]:
        """Convert several documents concurrently.

        Args:
            documents: Mapping of document id to storage-format body.
            ctx: FastMCP context for progress reporting.

        Returns:
            Mapping of document id to Markdown. Documents rejected with a
            confmd error are left out.

        """
        total = len(documents)
        completed_count = 0
        await ctx.report_progress(0, total, f"Starting conversion of {total} document(s)")

        async def _tracked_convert(doc_id: str, storage: str) -> tuple[str, str]:
            nonlocal completed_count
            markdown = await self.convert(storage)
            completed_count += 1
            await ctx.report_progress(completed_count, total, f"Converted {completed_count}/{total}: {doc_id}")
            return (doc_id, markdown)

        tasks = [_tracked_convert(doc_id, storage) for doc_id, storage in documents.items()]
        results_list = await asyncio.gather(*tasks, return_exceptions=True)

        # Skip expected confmd errors, re-raise unexpected ones
        result_dict: dict[str, str] = {}
        for item in results_list:
            if isinstance(item, ConfmdError):
                logger.error("Failed to convert document: %s", item)
                continue
            if isinstance(item, BaseException):
                raise item
            doc_id, markdown = item
            result_dict[doc_id] = markdown

        return result_dict


@asynccontextmanager
async def lifespan(app: TypedFastMCP) -> AsyncIterator[dict[str, Any]]:
    """Manage application lifespan: build and release the server state."""
    logger.info("Starting confmd server...")
    state = ServerState(get_settings())
    app.state = state
    try:
        yield {"state": state}
    finally:
        logger.info("Stopping confmd server...")
        app.state = None


# Helper functions
def log_tool_call(tool_name: str, details: str) -> None:
    """Log a tool call.

    Args:
        tool_name: Name of the tool being called
        details: Details about the tool call (e.g., document size)

    """
    logger.info("[TOOL CALLED] %s: %s", tool_name, details)


def get_state() -> ServerState:
    """Get the server state from the context."""
    if mcp.state is None:
        raise RuntimeError("Server state not initialized")
    return mcp.state


mcp = TypedFastMCP("confmd", lifespan=lifespan)


@mcp.tool(
    title="storage_to_markdown",
    description=get_settings().tool_storage_to_markdown_desc,
)
@timeit("storage_to_markdown tool")
async def storage_to_markdown(
    storage: Annotated[str, get_settings().arg_storage_desc],
) -> str:
    """Convert one storage-format body to Markdown."""
    log_tool_call("storage_to_markdown", f"{len(storage)} characters")
    state = get_state()
    try:
        result = await state.convert(storage)
    except ConfmdError as e:
        raise ToolError(f"{type(e).__name__}: {e}") from e
    return result


@mcp.tool(
    title="storage_batch_to_markdown",
    description=get_settings().tool_storage_batch_to_markdown_desc,
)
@timeit("storage_batch_to_markdown tool")
async def storage_batch_to_markdown(
    documents: Annotated[dict[str, str], get_settings().arg_documents_desc],
    ctx: Context,
) -> dict[str, str]:
    """Convert several storage-format bodies to Markdown."""
    log_tool_call("storage_batch_to_markdown", f"{len(documents)} document(s)")
    state = get_state()
    try:
        results = await state.convert_batch(documents, ctx)
    except ConfmdError as e:
        raise ToolError(f"{type(e).__name__}: {e}") from e
    return results


def main() -> None:
    """Run the MCP server."""
    settings = get_settings()
    setup_logging(settings)
    mcp.run(transport="streamable-http", host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
