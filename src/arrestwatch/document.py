"""
Read-only DOM capability used by the record extractor.

The extractor never talks to a browser directly. It only needs three
operations over a rendered document (query, visible text, attribute), so
any rendered HTML snapshot can back it. SoupDocument implements them with
BeautifulSoup over the HTML returned by ``page.content()``.
"""

import re
from typing import Any, Optional, Protocol, Sequence
from urllib.parse import urljoin

from bs4 import BeautifulSoup
from bs4.element import Tag

# Elements whose content is never rendered as visible text
_INVISIBLE_TAGS = ["script", "style", "noscript", "template"]

_BLANK_LINES = re.compile(r"\n\s*\n+")


class Document(Protocol):
    """Minimal DOM surface the extractor is written against."""

    base_url: str

    def query_all(self, selector: str, root: Optional[Any] = None) -> Sequence[Any]:
        ...

    def text(self, node: Any) -> str:
        ...

    def attr(self, node: Any, name: str) -> str:
        ...


class SoupDocument:
    """Document backed by a BeautifulSoup tree of rendered HTML."""

    def __init__(self, html: str, base_url: str = ""):
        """
        Parse rendered HTML.

        Args:
            html: Page markup, typically from ``page.content()``
            base_url: URL the markup was served from, for resolving links
        """
        self.base_url = base_url
        self._soup = BeautifulSoup(html or "", "html.parser")
        for tag in self._soup(_INVISIBLE_TAGS):
            tag.decompose()

    def query_all(self, selector: str, root: Optional[Tag] = None) -> list[Tag]:
        """All elements matching a CSS selector, in document order."""
        scope = root if root is not None else self._soup
        return scope.select(selector)

    def text(self, node: Tag) -> str:
        """Approximate innerText: block-separated lines, whitespace trimmed."""
        raw = node.get_text(separator="\n", strip=True)
        return _BLANK_LINES.sub("\n", raw)

    def attr(self, node: Tag, name: str) -> str:
        """Attribute value as a string; empty when missing."""
        value = node.get(name)
        if value is None:
            return ""
        if isinstance(value, list):
            return " ".join(value)
        return str(value).strip()


def resolve_url(document: Document, value: str) -> str:
    """Resolve a src/href attribute against the document URL, like the browser does."""
    if not value:
        return ""
    return urljoin(document.base_url, value) if document.base_url else value
