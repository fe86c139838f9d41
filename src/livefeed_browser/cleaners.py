# livefeed_browser/cleaners.py

import re

from bs4 import BeautifulSoup, Comment

NON_CONTENT_TAGS = ("script", "style", "noscript", "template", "svg", "iframe")

HIDDEN_CLASS_PAT = re.compile(r"(sr-only|visually-hidden|offscreen)", re.I)

_WS = re.compile(r"\s+")


def _remove_comments(soup) -> int:
    """Remove HTML comments in place; returns how many were removed."""
    comments = soup.find_all(string=lambda t: isinstance(t, Comment))
    for c in comments:
        c.extract()
    return len(comments)


def _remove_non_content(soup) -> int:
    removed = 0
    for tag in soup.find_all(NON_CONTENT_TAGS):
        tag.decompose()
        removed += 1
    return removed


def _is_hidden(el) -> bool:
    if el.attrs is None:
        return False
    if el.has_attr("hidden") or el.get("aria-hidden") == "true":
        return True
    style = (el.get("style") or "").replace(" ", "").lower()
    if "display:none" in style or "visibility:hidden" in style:
        return True
    classes = " ".join(el.get("class") or [])
    return bool(HIDDEN_CLASS_PAT.search(classes))


def _remove_hidden(soup) -> int:
    hidden = [el for el in soup.find_all(True) if _is_hidden(el)]
    for el in hidden:
        if not el.decomposed:
            el.decompose()
    return len(hidden)


def html_to_text(html: str, prune_hidden: bool = True) -> str:
    """
    Visible text of an HTML fragment on a single line.

    Comments and non-content tags are dropped, as are hidden elements unless
    prune_hidden is False. Whitespace runs collapse to single spaces.
    """
    soup = BeautifulSoup(html or "", "html.parser")
    _remove_comments(soup)
    _remove_non_content(soup)
    if prune_hidden:
        _remove_hidden(soup)
    return _WS.sub(" ", soup.get_text(" ", strip=True)).strip()
