"""HTML sanitization policies.

Two policies are provided:

- ``sanitize_html`` keeps a small allow-list of formatting tags and the
  ``class``/``id`` attributes for display-bound content.
- ``sanitize_text`` strips every tag for storage-bound or plain-text content.

Both drop the bodies of script-like elements entirely rather than keeping
their text.
"""

import re
from html import escape
from html.parser import HTMLParser
from typing import Optional

ALLOWED_TAGS = frozenset(
    {
        "p", "br", "strong", "em", "u",
        "h1", "h2", "h3", "h4", "h5", "h6",
        "ul", "ol", "li", "blockquote", "code", "pre",
        "span", "div",
    }
)
ALLOWED_ATTRIBUTES = frozenset({"class", "id"})
VOID_TAGS = frozenset({"br"})
DROP_CONTENT_TAGS = frozenset({"script", "style", "iframe", "object", "embed", "template", "noscript"})

_UNSAFE_VALUE_RE = re.compile(r"(javascript|vbscript)\s*:|data:text/html|expression\s*\(", re.IGNORECASE)


class _AllowListParser(HTMLParser):
    def __init__(self, allowed_tags: frozenset[str], allowed_attributes: frozenset[str]) -> None:
        super().__init__(convert_charrefs=True)
        self.allowed_tags = allowed_tags
        self.allowed_attributes = allowed_attributes
        self.parts: list[str] = []
        self._suppress = 0

    def handle_starttag(self, tag: str, attrs: list[tuple[str, Optional[str]]]) -> None:
        if tag in DROP_CONTENT_TAGS:
            self._suppress += 1
            return
        if self._suppress or tag not in self.allowed_tags:
            return
        rendered = [tag]
        for name, value in attrs:
            if name not in self.allowed_attributes or value is None:
                continue
            if _UNSAFE_VALUE_RE.search(value):
                continue
            rendered.append(f'{name}="{escape(value, quote=True)}"')
        self.parts.append(f"<{' '.join(rendered)}>")

    def handle_startendtag(self, tag: str, attrs: list[tuple[str, Optional[str]]]) -> None:
        if tag in VOID_TAGS and tag in self.allowed_tags and not self._suppress:
            self.parts.append(f"<{tag}>")

    def handle_endtag(self, tag: str) -> None:
        if tag in DROP_CONTENT_TAGS:
            self._suppress = max(0, self._suppress - 1)
            return
        if self._suppress or tag not in self.allowed_tags or tag in VOID_TAGS:
            return
        self.parts.append(f"</{tag}>")

    def handle_data(self, data: str) -> None:
        if not self._suppress:
            self.parts.append(escape(data, quote=False))


class _TextParser(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.parts: list[str] = []
        self._suppress = 0

    def handle_starttag(self, tag: str, attrs: list[tuple[str, Optional[str]]]) -> None:
        if tag in DROP_CONTENT_TAGS:
            self._suppress += 1

    def handle_endtag(self, tag: str) -> None:
        if tag in DROP_CONTENT_TAGS:
            self._suppress = max(0, self._suppress - 1)

    def handle_data(self, data: str) -> None:
        if not self._suppress:
            self.parts.append(data)


def sanitize_html(
    content: str,
    allowed_tags: frozenset[str] = ALLOWED_TAGS,
    allowed_attributes: frozenset[str] = ALLOWED_ATTRIBUTES,
) -> str:
    """Keep only allow-listed tags and attributes; text is preserved and escaped."""
    if not content:
        return ""
    parser = _AllowListParser(allowed_tags, allowed_attributes)
    parser.feed(content)
    parser.close()
    return "".join(parser.parts)


def sanitize_text(content: str) -> str:
    """Remove every tag, keeping the text content."""
    if not content:
        return ""
    parser = _TextParser()
    parser.feed(content)
    parser.close()
    return "".join(parser.parts).strip()
