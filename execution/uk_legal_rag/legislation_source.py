"""
Legislation XML Sources for the UK Legal RAG System

Fetches legislation.gov.uk XML (CLML) over HTTP and converts it into a
typed tree the chunker walks. Every node is one of three kinds:

    TEXT      -- a run of character data
    ELEMENT   -- a named element with ordered children
    SIBLINGS  -- consecutive same-named elements grouped together
                 (e.g. the run of P1 provisions inside a Part)

Usage:
    fetcher = LegislationFetcher()
    source = LegislationSource(
        xml_url="https://www.legislation.gov.uk/ukpga/1974/37/data.xml",
        legislation_type="health_safety",
    )
    parsed = fetcher.fetch_and_parse(source)
"""

import logging
from enum import Enum
from typing import Iterator, Optional, Union
from dataclasses import dataclass, field

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry
from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import Comment, Declaration, Doctype, ProcessingInstruction

from .errors import IngestionError
from .legal_patterns import LEGISLATION_URL_PATTERN

logger = logging.getLogger(__name__)

_NON_TEXT_STRINGS = (Comment, Declaration, Doctype, ProcessingInstruction)


# =============================================================================
# Sources
# =============================================================================

@dataclass
class LegislationSource:
    """One legislative act to ingest."""
    xml_url: str
    legislation_type: str  # retrieval category: employment, equality, health_safety, ...
    act_title: Optional[str] = None
    legislation_year: Optional[int] = None

    def __post_init__(self):
        if self.legislation_year is None:
            match = LEGISLATION_URL_PATTERN.search(self.xml_url)
            if match:
                self.legislation_year = int(match.group(2))

    @property
    def pdf_url(self) -> str:
        """Human-readable rendition cited as the chunk source."""
        if self.xml_url.endswith(".xml"):
            return self.xml_url[: -len(".xml")] + ".pdf"
        return self.xml_url

    @property
    def document_class(self) -> Optional[str]:
        """legislation.gov.uk type segment, e.g. 'ukpga' or 'uksi'."""
        match = LEGISLATION_URL_PATTERN.search(self.xml_url)
        return match.group(1) if match else None

    @classmethod
    def from_dict(cls, data: dict) -> "LegislationSource":
        return cls(
            xml_url=data["xml_url"],
            legislation_type=data["legislation_type"],
            act_title=data.get("act_title"),
            legislation_year=data.get("legislation_year"),
        )

    def to_dict(self) -> dict:
        return {
            "xml_url": self.xml_url,
            "legislation_type": self.legislation_type,
            "act_title": self.act_title,
            "legislation_year": self.legislation_year,
        }


# =============================================================================
# Typed tree
# =============================================================================

class NodeKind(Enum):
    TEXT = "text"
    ELEMENT = "element"
    SIBLINGS = "siblings"


@dataclass
class LegislationNode:
    """A node of the parsed legislation tree."""
    kind: NodeKind
    name: str = ""
    text: str = ""
    children: list["LegislationNode"] = field(default_factory=list)
    attributes: dict = field(default_factory=dict)

    def elements(self) -> Iterator["LegislationNode"]:
        """Direct child elements, looking through SIBLINGS groups."""
        for child in self.children:
            if child.kind is NodeKind.ELEMENT:
                yield child
            elif child.kind is NodeKind.SIBLINGS:
                yield from child.children

    def child(self, name: str) -> Optional["LegislationNode"]:
        """First direct child element with the given local name."""
        for element in self.elements():
            if element.name == name:
                return element
        return None

    def find(self, name: str) -> Optional["LegislationNode"]:
        """First descendant element (depth-first) with the given local name."""
        for element in self.elements():
            if element.name == name:
                return element
            found = element.find(name)
            if found is not None:
                return found
        return None

    def text_content(self) -> str:
        """All descendant text joined with single spaces."""
        if self.kind is NodeKind.TEXT:
            return self.text
        parts = [child.text_content() for child in self.children]
        return " ".join(p for p in parts if p)


@dataclass
class ParsedLegislation:
    """A parsed legislative act ready for chunking."""
    source: LegislationSource
    root: LegislationNode
    title: str = ""
    long_title: str = ""


def _local_name(tag: Tag) -> str:
    return tag.name.split(":")[-1]


def _build_node(item) -> Optional[LegislationNode]:
    if isinstance(item, Tag):
        return LegislationNode(
            kind=NodeKind.ELEMENT,
            name=_local_name(item),
            children=_build_children(item),
            attributes=dict(item.attrs),
        )
    if isinstance(item, NavigableString) and not isinstance(item, _NON_TEXT_STRINGS):
        text = str(item)
        if text.strip():
            return LegislationNode(kind=NodeKind.TEXT, text=text)
    return None


def _build_children(tag: Tag) -> list[LegislationNode]:
    nodes: list[LegislationNode] = []
    for item in tag.children:
        node = _build_node(item)
        if node is None:
            continue
        previous = nodes[-1] if nodes else None
        if node.kind is NodeKind.ELEMENT and previous is not None:
            if previous.kind is NodeKind.SIBLINGS and previous.name == node.name:
                previous.children.append(node)
                continue
            if previous.kind is NodeKind.ELEMENT and previous.name == node.name:
                nodes[-1] = LegislationNode(
                    kind=NodeKind.SIBLINGS, name=node.name, children=[previous, node],
                )
                continue
        nodes.append(node)
    return nodes


def _find_dc_title(soup: BeautifulSoup) -> str:
    for tag in soup.find_all(True):
        if _local_name(tag) == "title" and (tag.prefix == "dc" or tag.name.startswith("dc:")):
            return tag.get_text(" ", strip=True)
    return ""


def parse_legislation_xml(
    xml: Union[str, bytes],
    source: LegislationSource,
) -> ParsedLegislation:
    """
    Parse legislation XML into a typed tree.

    Args:
        xml: Raw XML document
        source: The source the XML was fetched from

    Returns:
        ParsedLegislation with the act title and long title resolved

    Raises:
        IngestionError: If the document has no root element
    """
    soup = BeautifulSoup(xml, features="xml")
    root_tag = next((c for c in soup.children if isinstance(c, Tag)), None)
    if root_tag is None:
        raise IngestionError(source.xml_url, "XML document has no root element")

    root = _build_node(root_tag)

    title = source.act_title or _find_dc_title(soup)
    if not title:
        prelims = root.find("PrimaryPrelims") or root.find("SecondaryPrelims")
        title_node = prelims.child("Title") if prelims else None
        title = title_node.text_content() if title_node else ""

    long_title_node = root.find("LongTitle")
    long_title = long_title_node.text_content() if long_title_node else ""

    logger.debug(f"Parsed {source.xml_url}: title={title!r}")
    return ParsedLegislation(
        source=source,
        root=root,
        title=" ".join(title.split()),
        long_title=" ".join(long_title.split()),
    )


# =============================================================================
# HTTP fetching
# =============================================================================

def make_session() -> requests.Session:
    """Session with retry on transient server errors."""
    session = requests.Session()
    retries = Retry(total=3, backoff_factor=2, status_forcelist=[500, 502, 503, 504])
    session.mount("https://", HTTPAdapter(max_retries=retries))
    session.mount("http://", HTTPAdapter(max_retries=retries))
    session.headers.update({"Accept": "application/xml"})
    return session


class LegislationFetcher:
    """Downloads legislation XML and parses it."""

    def __init__(self, session: Optional[requests.Session] = None, timeout: float = 60.0):
        self._session = session or make_session()
        self.timeout = timeout

    def fetch(self, source: LegislationSource) -> bytes:
        """Download the raw XML for a source."""
        try:
            response = self._session.get(source.xml_url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise IngestionError(source.xml_url, f"fetch failed: {e}") from e
        logger.info(f"Fetched {source.xml_url} ({len(response.content)} bytes)")
        return response.content

    def fetch_and_parse(self, source: LegislationSource) -> ParsedLegislation:
        return parse_legislation_xml(self.fetch(source), source)
