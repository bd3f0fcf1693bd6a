"""Turn fetched HTML into the flat text the extractors search."""
import re

from selectolax.lexbor import LexborHTMLParser

# Elements whose text never renders
INVISIBLE_TAGS = ["script", "style", "noscript", "template", "svg"]

_WHITESPACE = re.compile(r"\s+")


def collapse_whitespace(text: str) -> str:
    """Collapse runs of whitespace (including nbsp) to single spaces."""
    return _WHITESPACE.sub(" ", text.replace("\xa0", " ")).strip()


def html_to_text(html: str | None) -> str:
    """
    Extract the visible text of a page.
    Case is preserved; whitespace runs become single spaces.
    """
    if not html:
        return ""
    parser = LexborHTMLParser(html)
    parser.strip_tags(INVISIBLE_TAGS)
    root = parser.body or parser.root
    if root is None:
        return ""
    return collapse_whitespace(root.text(separator=" "))
