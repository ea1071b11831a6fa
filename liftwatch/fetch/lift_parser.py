"""
Lift status extraction from the conditions page.

The page has shipped in two incompatible shapes over time, so extraction is
driven by a short ordered list of row strategies. Each strategy knows how to
find rows and turn one row into a (name, status) pair; the first strategy that
yields anything wins. Rows that cannot be read are skipped, never fatal.
"""

import logging
import re
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple

from bs4 import BeautifulSoup
from bs4.element import Tag

from liftwatch.core.config import SourceConfig
from liftwatch.fetch.utils import normalize_text
from liftwatch.schemas import ExtractionRule, StatusMap

logger = logging.getLogger(__name__)


def parse_document(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


def element_children(element: Tag) -> List[Tag]:
    """Child elements only; whitespace and comment nodes do not count as positions."""
    return [child for child in element.children if isinstance(child, Tag)]


def child_at(element: Tag, path: Sequence[int]) -> Optional[Tag]:
    node = element
    for index in path:
        children = element_children(node)
        if index >= len(children):
            return None
        node = children[index]
    return node


def _class_string(element: Tag) -> str:
    classes = element.get("class") or []
    if isinstance(classes, str):
        return classes.lower()
    return " ".join(classes).lower()


def _apply_pattern(value: Optional[str], regex: Optional[re.Pattern]) -> Optional[str]:
    if not value:
        return None
    if regex is None:
        return value
    match = regex.search(value)
    if not match:
        return None
    return match.group(1) if match.groups() else match.group(0)


def read_field(row: Tag, rule: ExtractionRule) -> Optional[str]:
    """
    Read one field from a row. Returns None when the child is missing,
    the value is empty or the pattern does not match.
    """
    node = child_at(row, rule.path)
    if node is None:
        return None

    if rule.attribute:
        value = node.get(rule.attribute)
        if isinstance(value, list):
            value = " ".join(value)
    else:
        value = node.get_text(" ", strip=True)

    value = normalize_text(value) if value else None
    return _apply_pattern(value, rule.regex)


class RowStrategy:
    name = "row"

    def __init__(self, row_selector: str):
        self.row_selector = row_selector

    def rows(self, document: Tag) -> List[Tag]:
        return document.select(self.row_selector)

    def extract_row(self, row: Tag) -> Optional[Tuple[str, str]]:
        raise NotImplementedError


class RuleStrategy(RowStrategy):
    """Every row has the same layout; fields sit at fixed child paths."""

    name = "rules"

    def __init__(self, row_selector: str, rules: Mapping[str, ExtractionRule]):
        super().__init__(row_selector)
        self.rules = dict(rules)

    def extract_row(self, row: Tag) -> Optional[Tuple[str, str]]:
        lift = read_field(row, self.rules["name"])
        status = read_field(row, self.rules["status"])
        if not lift or not status:
            return None
        return lift, status


class SniffStrategy(RowStrategy):
    """
    Locate the name and status cells by class keywords instead of position,
    e.g. <div class="lift-title">Lookout</div><div class="lift-status"><img src=".../icon-open.svg"></div>
    """

    name = "sniff"

    def __init__(
        self,
        row_selector: str,
        status_pattern: str = r"icon-(.+)\.svg$",
        name_keywords: Iterable[str] = ("title",),
        status_keywords: Iterable[str] = ("status", "icon"),
    ):
        super().__init__(row_selector)
        self.status_regex = re.compile(status_pattern)
        self.name_keywords = tuple(name_keywords)
        self.status_keywords = tuple(status_keywords)

    def _status_from(self, cell: Tag) -> Optional[str]:
        img = cell if cell.name == "img" else cell.find("img")
        if img is None:
            return None
        return _apply_pattern(img.get("src"), self.status_regex)

    def extract_row(self, row: Tag) -> Optional[Tuple[str, str]]:
        lift = status = None
        for cell in element_children(row):
            classes = _class_string(cell)
            if lift is None and any(k in classes for k in self.name_keywords):
                lift = normalize_text(cell.get_text(" ", strip=True)) or None
            elif status is None and any(k in classes for k in self.status_keywords):
                status = self._status_from(cell)
        if not lift or not status:
            return None
        return lift, status


def default_strategies(source: SourceConfig) -> List[RowStrategy]:
    return [
        RuleStrategy(source.row_selector, source.rules),
        SniffStrategy(source.row_selector, status_pattern=source.sniff_pattern),
    ]


def has_rows(document: Tag, strategies: Sequence[RowStrategy]) -> bool:
    return any(strategy.rows(document) for strategy in strategies)


def extract(document: Tag, strategies: Sequence[RowStrategy]) -> StatusMap:
    """
    Build the lift -> status map from a parsed document.
    An empty map means no readable rows; it is not an error.
    """
    for strategy in strategies:
        rows = strategy.rows(document)
        result: StatusMap = {}
        for row in rows:
            pair = strategy.extract_row(row)
            if pair is None:
                logger.debug("Skipping unreadable row with %s strategy", strategy.name)
                continue
            lift, status = pair
            result[lift] = status
        if result:
            logger.debug("Extracted %d lifts from %d rows using %s strategy", len(result), len(rows), strategy.name)
            return result
    return {}
