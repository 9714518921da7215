"""DOM snapshot helpers shared by the extraction and filter engines."""

from __future__ import annotations

import logging
import re
from typing import Iterable, List, Optional, Union

from bs4 import BeautifulSoup, Tag
from soupsieve import SelectorSyntaxError

logger = logging.getLogger(__name__)

_WS_RE = re.compile(r"\s+")

Node = Union[BeautifulSoup, Tag]


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


def safe_select(node: Node, selector: str) -> List[Tag]:
    """``node.select`` that treats an invalid selector as no match."""
    try:
        return node.select(selector)
    except (SelectorSyntaxError, NotImplementedError, ValueError) as e:
        logger.debug(f"Invalid selector {selector!r}: {e}")
        return []


def safe_select_one(node: Node, selector: str) -> Optional[Tag]:
    found = safe_select(node, selector)
    return found[0] if found else None


def select_first(node: Node, selectors: Iterable[str]) -> Optional[Tag]:
    """First element matched by the first selector that matches anything."""
    for selector in selectors:
        found = safe_select_one(node, selector)
        if found is not None:
            return found
    return None


def node_text(node: Optional[Node]) -> str:
    if node is None:
        return ""
    return _WS_RE.sub(" ", node.get_text(" ", strip=True)).strip()


def first_text(node: Node, selectors: Iterable[str]) -> str:
    """Text of the first selector (in order) whose match has non-empty text."""
    for selector in selectors:
        for el in safe_select(node, selector):
            text = node_text(el)
            if text:
                return text
    return ""


def attr(node: Optional[Tag], name: str) -> str:
    if node is None:
        return ""
    value = node.get(name)
    if isinstance(value, list):
        value = " ".join(value)
    return (value or "").strip()


def class_string(node: Tag) -> str:
    return " ".join(node.get("class") or []).lower()


def is_disabled(node: Tag) -> bool:
    if node.has_attr("disabled"):
        return True
    if attr(node, "aria-disabled").lower() == "true":
        return True
    return "disabled" in class_string(node)


def is_hidden(node: Tag) -> bool:
    """Best-effort static visibility check (inline style / hidden attributes)."""
    current: Optional[Tag] = node
    while isinstance(current, Tag):
        if current.has_attr("hidden") or attr(current, "aria-hidden").lower() == "true":
            return True
        style = attr(current, "style").replace(" ", "").lower()
        if "display:none" in style or "visibility:hidden" in style:
            return True
        current = current.parent
    return False


def css_path(node: Tag) -> str:
    """
    Build a selector addressing ``node`` in the live page.

    Prefers a unique id, otherwise an ``nth-of-type`` chain from the root.
    """
    element_id = attr(node, "id")
    if element_id and re.match(r"^[A-Za-z][\w-]*$", element_id):
        root = node
        while root.parent is not None:
            root = root.parent
        if len(root.find_all(id=element_id)) == 1:
            return f"#{element_id}"

    parts: List[str] = []
    current: Optional[Tag] = node
    while isinstance(current, Tag) and current.name != "[document]":
        parent = current.parent
        if parent is None:
            parts.append(current.name)
            break
        same = [sib for sib in parent.find_all(current.name, recursive=False)]
        if len(same) > 1:
            position = next(i for i, sib in enumerate(same, start=1) if sib is current)
            parts.append(f"{current.name}:nth-of-type({position})")
        else:
            parts.append(current.name)
        current = parent
    return " > ".join(reversed(parts))
