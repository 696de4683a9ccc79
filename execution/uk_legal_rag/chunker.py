"""
Legislation-Aware Chunker

Turns the typed legislation tree into bounded, context-tagged retrieval
chunks:

- Depth-first walk with a context stack (Part / Chapter / Schedule /
  numbered provision / long title) labelling every text fragment
- Inline markup (citations, emphasis, defined terms) merged into the
  surrounding sentence instead of becoming separate fragments
- Noise fragments (page numbers, bare markers) dropped
- Greedy packing of whole fragments up to max_chunk_length; fragments
  longer than the limit are pre-split at sentence, then word, boundaries
- First chunk seeded with the act title and long title
"""

import re
import logging
from dataclasses import dataclass, field
from typing import Optional, Union

from .config import PipelineConfig
from .errors import IngestionError
from .legislation_source import (
    LegislationNode,
    LegislationSource,
    NodeKind,
    ParsedLegislation,
    parse_legislation_xml,
)
from .legal_patterns import (
    DEFAULT_SECTION,
    INLINE_ELEMENTS,
    NOISE_PATTERN,
    NUMBER_ELEMENTS,
    PROVISION_ELEMENTS,
    SKIPPED_ELEMENTS,
    STRUCTURAL_LABELS,
    STRUCTURE_REFERENCE_PATTERN,
)

logger = logging.getLogger(__name__)


@dataclass
class LegislationChunk:
    """A bounded span of normalized legislative text with its provenance."""
    chunk_id: str
    text: str
    source_url: str
    act_title: str
    legislation_type: str
    legislation_year: Optional[int]
    section_context: str
    chunk_index: int
    total_chunks: int = 0

    def to_dict(self) -> dict:
        return {
            "chunk_id": self.chunk_id,
            "text": self.text,
            "source_url": self.source_url,
            "act_title": self.act_title,
            "legislation_type": self.legislation_type,
            "legislation_year": self.legislation_year,
            "section_context": self.section_context,
            "chunk_index": self.chunk_index,
            "total_chunks": self.total_chunks,
        }


def normalize_legal_text(text: str) -> str:
    """Collapse whitespace, fix punctuation spacing and canonicalize structure references."""
    text = re.sub(r"\s+", " ", text).strip()
    text = re.sub(r"\s+([,.;:!?)\]])", r"\1", text)
    text = re.sub(r"([(\[])\s+", r"\1", text)
    text = re.sub(r"([,;:])(?=[A-Za-z])", r"\1 ", text)
    return STRUCTURE_REFERENCE_PATTERN.sub(
        lambda m: f"{m.group(1).capitalize()} {m.group(2)}", text
    )


@dataclass
class _WalkState:
    title: str
    skip_long_title: bool
    labels: list[str] = field(default_factory=list)
    buffer: list[str] = field(default_factory=list)
    fragments: list[tuple[str, str]] = field(default_factory=list)

    @property
    def label(self) -> str:
        return self.labels[-1] if self.labels else DEFAULT_SECTION


class LegislationChunker:
    """
    Chunks parsed legislation into retrieval units.

    Every chunk except possibly the last of a source is at most
    max_chunk_length characters; chunk indexes are contiguous from 0.
    """

    def __init__(self, config: Optional[PipelineConfig] = None):
        self.config = config or PipelineConfig()

    def chunk(self, document: ParsedLegislation) -> list[LegislationChunk]:
        """
        Chunk a parsed act.

        Args:
            document: ParsedLegislation from parse_legislation_xml

        Returns:
            Ordered LegislationChunk list with total_chunks set

        Raises:
            IngestionError: If no text fragments survive extraction
        """
        source = document.source
        title = normalize_legal_text(document.title)
        long_title = normalize_legal_text(document.long_title)
        use_long_title = len(long_title) > self.config.min_long_title_length

        state = _WalkState(title=title, skip_long_title=use_long_title)
        self._walk(document.root, state)
        self._flush(state)

        if not state.fragments:
            raise IngestionError(source.xml_url, "no text fragments extracted")

        seed = self._seed(title, long_title if use_long_title else "")
        packed = self._pack(seed, state.fragments)

        chunks = [
            LegislationChunk(
                chunk_id=f"{source.xml_url}-chunk-{i}",
                text=text,
                source_url=source.pdf_url,
                act_title=title,
                legislation_type=source.legislation_type,
                legislation_year=source.legislation_year,
                section_context=section,
                chunk_index=i,
            )
            for i, (text, section) in enumerate(packed)
        ]
        for c in chunks:
            c.total_chunks = len(chunks)

        logger.info(
            f"Chunked {title or source.xml_url}: {len(state.fragments)} fragments "
            f"-> {len(chunks)} chunks"
        )
        return chunks

    def chunk_xml(
        self,
        xml: Union[str, bytes],
        source: LegislationSource,
    ) -> list[LegislationChunk]:
        """Parse and chunk raw XML in one step."""
        return self.chunk(parse_legislation_xml(xml, source))

    # =========================================================================
    # Tree walk
    # =========================================================================

    def _walk(self, node: LegislationNode, state: _WalkState) -> None:
        if node.kind is NodeKind.TEXT:
            state.buffer.append(node.text)
            return

        if node.kind is NodeKind.SIBLINGS:
            for child in node.children:
                self._walk(child, state)
            return

        name = node.name
        if name in SKIPPED_ELEMENTS or name in NUMBER_ELEMENTS:
            return
        if name == "LongTitle" and state.skip_long_title:
            return

        if name in INLINE_ELEMENTS:
            for child in node.children:
                self._walk(child, state)
            return

        # Block element: fragments never span its boundary
        self._flush(state)
        label = self._label_for(node)
        if label:
            state.labels.append(label)
        for child in node.children:
            self._walk(child, state)
        self._flush(state)
        if label:
            state.labels.pop()

    def _label_for(self, node: LegislationNode) -> Optional[str]:
        if node.name in STRUCTURAL_LABELS:
            base = STRUCTURAL_LABELS[node.name]
            number = node.child("Number")
            if number is None:
                return base
            number_text = " ".join(number.text_content().split())
            number_text = re.sub(rf"^{base}\s*", "", number_text, flags=re.IGNORECASE)
            return f"{base} {number_text}" if number_text else base

        if node.name in PROVISION_ELEMENTS:
            pnumber = node.child("Pnumber")
            if pnumber is not None:
                number_text = " ".join(pnumber.text_content().split())
                if number_text:
                    return f"Section {number_text}"
        return None

    def _flush(self, state: _WalkState) -> None:
        if not state.buffer:
            return
        text = normalize_legal_text(" ".join(state.buffer))
        state.buffer.clear()

        if len(text) < self.config.min_fragment_length or NOISE_PATTERN.match(text):
            return
        if text == state.title:
            return

        limit = self.config.max_chunk_length - self.config.split_margin
        for piece in self._split_oversized(text, limit):
            state.fragments.append((state.label, piece))

    # =========================================================================
    # Splitting and packing
    # =========================================================================

    def _split_oversized(self, text: str, limit: int) -> list[str]:
        """Split a fragment longer than ``limit`` at sentence, then word, boundaries."""
        if len(text) <= limit:
            return [text]

        pieces = []
        current = ""
        for sentence in re.split(r"(?<=[.;:!?])\s+", text):
            for part in self._split_words(sentence, limit):
                candidate = f"{current} {part}" if current else part
                if len(candidate) <= limit:
                    current = candidate
                else:
                    pieces.append(current)
                    current = part
        if current:
            pieces.append(current)
        return pieces

    def _split_words(self, sentence: str, limit: int) -> list[str]:
        if len(sentence) <= limit:
            return [sentence]

        parts = []
        current = ""
        for word in sentence.split(" "):
            while len(word) > limit:
                if current:
                    parts.append(current)
                    current = ""
                parts.append(word[:limit])
                word = word[limit:]
            candidate = f"{current} {word}" if current else word
            if len(candidate) <= limit:
                current = candidate
            else:
                parts.append(current)
                current = word
        if current:
            parts.append(current)
        return parts

    def _seed(self, title: str, long_title: str) -> str:
        if not long_title:
            return title
        seed = f"{title}: {long_title}" if title else long_title
        cap = self.config.max_chunk_length // 2
        if len(seed) > cap:
            seed = seed[:cap].rsplit(" ", 1)[0]
        return seed

    @staticmethod
    def _with_marker(fragment: str, label: str, previous_label: Optional[str]) -> str:
        if label != DEFAULT_SECTION and label != previous_label:
            return f"[{label}] {fragment}"
        return fragment

    def _pack(self, seed: str, fragments: list[tuple[str, str]]) -> list[tuple[str, str]]:
        """Greedily pack whole fragments into chunks; returns (text, section_context) pairs."""
        max_length = self.config.max_chunk_length
        packed = []
        current = seed
        current_section: Optional[str] = None
        last_label: Optional[str] = None

        for label, fragment in fragments:
            previous = last_label if current_section is not None else None
            piece = self._with_marker(fragment, label, previous)
            candidate = f"{current} {piece}" if current else piece

            if len(candidate) > max_length and current:
                packed.append((current, current_section or DEFAULT_SECTION))
                current = self._with_marker(fragment, label, None)
                current_section = label
            else:
                current = candidate
                if current_section is None:
                    current_section = label
            last_label = label

        if current:
            packed.append((current, current_section or DEFAULT_SECTION))
        return packed


if __name__ == "__main__":
    import sys
    import json
    from pathlib import Path

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    if len(sys.argv) < 3:
        print("Usage: python -m execution.uk_legal_rag.chunker <file.xml> <legislation_type> [xml_url]")
        sys.exit(1)

    xml_path = Path(sys.argv[1])
    url = sys.argv[3] if len(sys.argv) > 3 else xml_path.resolve().as_uri()
    result = LegislationChunker().chunk_xml(
        xml_path.read_bytes(),
        LegislationSource(xml_url=url, legislation_type=sys.argv[2]),
    )
    print(json.dumps([c.to_dict() for c in result[:3]], indent=2))
    print(f"... {len(result)} chunks total")
