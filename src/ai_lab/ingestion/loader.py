"""Source extraction — turn a PDF, a remote page or literal text into plain text."""

from __future__ import annotations

import io
import logging
from typing import Annotated, Any, Literal, Union

import httpx
from bs4 import BeautifulSoup
from pydantic import BaseModel, Field
from pypdf import PdfReader

from ai_lab.errors import ExtractionError

logger = logging.getLogger(__name__)

DEFAULT_TEXT_TITLE = "Untitled Document"
DEFAULT_PAGE_TITLE = "Untitled"


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


class DocumentSource(BaseModel):
    """An uploaded page-oriented document (PDF)."""

    kind: Literal["document"] = "document"
    data: bytes
    filename: str


class RemoteSource(BaseModel):
    """A page fetched over HTTP."""

    kind: Literal["remote"] = "remote"
    url: str


class LiteralSource(BaseModel):
    """Text supplied directly by the caller."""

    kind: Literal["literal"] = "literal"
    text: str
    title: str = ""


Source = Annotated[Union[DocumentSource, RemoteSource, LiteralSource], Field(discriminator="kind")]


class ExtractedSource(BaseModel):
    """Plain text plus metadata produced by :func:`extract`.

    ``content`` is passed on as-is, even when empty.
    """

    content: str
    title: str
    metadata: dict[str, Any] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Extractors
# ---------------------------------------------------------------------------


def extract_pdf(data: bytes, filename: str) -> ExtractedSource:
    """Extract concatenated page text from a PDF.

    Raises
    ------
    ExtractionError
        When the bytes are not a readable, unencrypted PDF.
    """
    try:
        reader = PdfReader(io.BytesIO(data))
        if reader.is_encrypted:
            raise ValueError("document is encrypted")
        pages = [page.extract_text() or "" for page in reader.pages]
        info = {str(k).lstrip("/"): str(v) for k, v in (reader.metadata or {}).items()}
    except Exception as exc:
        logger.warning("PDF extraction failed for %s: %s", filename, exc)
        raise ExtractionError(f"Failed to process PDF: {exc}", details={"filename": filename}) from exc

    return ExtractedSource(
        content="\n".join(pages),
        title=filename,
        metadata={
            "filename": filename,
            "size": len(data),
            "page_count": len(pages),
            "author": info.get("Author") or None,
            "extra": info,
        },
    )


def extract_html(html: str) -> tuple[str, str]:
    """Return ``(text, title)`` for an HTML page.

    Script and style blocks are dropped, every tag is stripped and whitespace
    runs are collapsed to single spaces.
    """
    soup = BeautifulSoup(html, "html.parser")
    title = DEFAULT_PAGE_TITLE
    if soup.title and soup.title.string and soup.title.string.strip():
        title = soup.title.string.strip()

    for tag in soup(["script", "style"]):
        tag.decompose()
    text = " ".join(soup.get_text(separator=" ").split())
    return text, title


async def extract_url(url: str, *, http_client: httpx.AsyncClient | None = None) -> ExtractedSource:
    """Fetch *url* and extract its text.

    Parameters
    ----------
    url:
        Page to fetch.
    http_client:
        Client to reuse.  A short-lived client is created when omitted.

    Raises
    ------
    ExtractionError
        On transport failure, a non-success status, or a content type that is
        neither HTML nor another ``text/*`` type.
    """
    try:
        if http_client is None:
            async with httpx.AsyncClient(follow_redirects=True, timeout=30.0) as client:
                response = await client.get(url)
        else:
            response = await http_client.get(url)
    except httpx.HTTPError as exc:
        raise ExtractionError(f"Failed to process URL: {exc}", details={"url": url}) from exc

    if not response.is_success:
        raise ExtractionError(
            f"Failed to process URL: HTTP {response.status_code}: {response.reason_phrase}",
            details={"url": url, "status": response.status_code},
        )

    content_type = response.headers.get("content-type", "")
    metadata: dict[str, Any] = {"url": url, "content_type": content_type, "size": len(response.content)}

    if "text/html" in content_type:
        content, title = extract_html(response.text)
        return ExtractedSource(content=content, title=title, metadata=metadata)
    if "text/" in content_type:
        return ExtractedSource(content=response.text, title=url, metadata=metadata)

    raise ExtractionError(f"Unsupported content type: {content_type or 'unknown'}", details={"url": url})


def extract_literal(text: str, title: str = "") -> ExtractedSource:
    title = title.strip() or DEFAULT_TEXT_TITLE
    return ExtractedSource(content=text, title=title, metadata={"size": len(text.encode("utf-8"))})


async def extract(
    source: DocumentSource | RemoteSource | LiteralSource,
    *,
    http_client: httpx.AsyncClient | None = None,
) -> ExtractedSource:
    """Dispatch *source* to the matching extractor."""
    if isinstance(source, DocumentSource):
        return extract_pdf(source.data, source.filename)
    if isinstance(source, RemoteSource):
        return await extract_url(source.url, http_client=http_client)
    return extract_literal(source.text, source.title)
