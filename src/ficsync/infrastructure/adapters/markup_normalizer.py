"""Reduce source-site chapter HTML to paragraph and emphasis structure."""

from __future__ import annotations

from bs4 import BeautifulSoup, Comment, Tag

ALLOWED_TAGS = frozenset(
    {
        "p", "br", "hr", "em", "i", "strong", "b", "u", "s", "sup", "sub",
        "blockquote", "h1", "h2", "h3", "h4", "h5", "h6", "ul", "ol", "li",
    }
)

# Removed together with their content
DROPPED_TAGS = ["script", "style", "noscript", "nav", "form", "iframe", "button", "select", "header", "footer"]

# Ad and navigation containers used by story sites
AD_SELECTORS = (
    "[class*=adsbygoogle]",
    "[id^=div-gpt-ad]",
    "[class*=ad-container]",
    "[class*=ads_container]",
    "[class~=lc-wrapper]",
)


def normalize_markup(html: str | Tag) -> str:
    """
    Normalize a chapter's HTML into an XHTML fragment.

    Navigation, scripts, forms and ad containers are removed; allowed tags
    keep their structure but lose every attribute; any other tag is unwrapped
    so its text survives. The result is deterministic for a given input.

    Args:
        html: Raw HTML string or an already-parsed container tag

    Returns:
        Well-formed XHTML fragment
    """
    soup = BeautifulSoup(str(html), "html.parser")

    for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
        comment.extract()
    for tag in soup.find_all(DROPPED_TAGS):
        tag.decompose()
    for selector in AD_SELECTORS:
        for tag in soup.select(selector):
            tag.decompose()

    for tag in soup.find_all(True):
        if tag.name in ALLOWED_TAGS:
            tag.attrs = {}
        else:
            tag.unwrap()

    # minimal formatter escapes only & < > and closes void tags as <br/>
    return soup.decode(formatter="minimal").strip()
