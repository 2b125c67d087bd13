"""DOM fallback extractor: typed selector probes plus a vocabulary heuristic.

Each field has an ordered tuple of probes (stable ``data-*`` markers first,
generic class/tag patterns last). A single dispatch, ``run_probes``, runs a
probe tuple inside one document scope. Scopes are tried in order:

  1. top document, light DOM
  2. top document, shadow trees (bounded depth)
  3. each same-origin nested frame (light DOM, then its shadow trees)

"Not found" is a None return at every level; nothing here raises on a miss.
"""

import logging
import re
from collections.abc import Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict

from jobcrawl.browser.traversal import (
    PROBE_JS,
    VISIBLE_TEXT_JS,
    DocumentLike,
    nested_documents,
    safe_evaluate,
)
from jobcrawl.core.schemas import DomResults, FieldKind

logger = logging.getLogger(__name__)


class Capture(str, Enum):
    """What a probe reads from a matched element."""

    TEXT = "text"
    HTML = "html"
    DATETIME = "datetime"
    ICON_LABEL = "icon_label"


class Probe(BaseModel):
    """One selector candidate and the capability used to read it.

    ``attribute`` is the icon keyword for ICON_LABEL probes.
    """

    model_config = ConfigDict(frozen=True)

    selector: str
    capture: Capture = Capture.TEXT
    attribute: str | None = None


ProbeTable = Mapping[FieldKind, tuple[Probe, ...]]

# (canonical label, pattern) in output order.
Vocabulary = tuple[tuple[str, re.Pattern[str]], ...]

EMPLOYMENT_TYPE_VOCABULARY: Vocabulary = (
    ("Full-time", re.compile(r"\bfull[\s-]?time\b", re.IGNORECASE)),
    ("Part-time", re.compile(r"\bpart[\s-]?time\b", re.IGNORECASE)),
    ("Contract", re.compile(r"\bcontract\b", re.IGNORECASE)),
    ("Temporary", re.compile(r"\btemporary\b", re.IGNORECASE)),
    ("Internship", re.compile(r"\bintern(?:ship)?\b", re.IGNORECASE)),
    ("Freelance", re.compile(r"\bfreelance\b", re.IGNORECASE)),
)

WORKPLACE_TYPE_VOCABULARY: Vocabulary = (
    ("On-site", re.compile(r"\bon[\s-]?site\b", re.IGNORECASE)),
    ("Hybrid", re.compile(r"\bhybrid\b", re.IGNORECASE)),
    ("Remote", re.compile(r"\bremote\b", re.IGNORECASE)),
)

DEFAULT_HEURISTICS: Mapping[FieldKind, Vocabulary] = {
    FieldKind.EMPLOYMENT_TYPE: EMPLOYMENT_TYPE_VOCABULARY,
    FieldKind.WORKPLACE_TYPE: WORKPLACE_TYPE_VOCABULARY,
}

_HEADLINE_AT = re.compile(r"^(?P<title>.+)\s+at\s+(?P<company>[^\n]+)$")


def scan_vocabulary(text: str | None, vocabulary: Vocabulary) -> str | None:
    """Return every vocabulary label found in text, joined with ", ", or None."""
    if not text:
        return None
    found = [label for label, pattern in vocabulary if pattern.search(text)]
    return ", ".join(found) if found else None


def split_headline(text: str | None) -> tuple[str, str] | None:
    """Split a "<title> at <company>" headline. None if it has no " at "."""
    if not text:
        return None
    match = _HEADLINE_AT.match(text.strip())
    if match is None:
        return None
    return match.group("title").strip(), match.group("company").strip()


async def run_probes(
    doc: DocumentLike,
    probes: tuple[Probe, ...],
    *,
    shadow: bool,
    max_depth: int,
) -> str | None:
    """Evaluate a probe tuple in one document scope; first non-empty value wins."""
    if not probes:
        return None
    arg = {
        "probes": [p.model_dump(mode="json") for p in probes],
        "shadow": shadow,
        "maxDepth": max_depth,
    }
    hit: Any = await safe_evaluate(doc, PROBE_JS, arg)
    if not isinstance(hit, dict):
        return None
    value = hit.get("value")
    if not isinstance(value, str) or not value.strip():
        return None
    index = hit.get("index")
    if isinstance(index, int) and 0 <= index < len(probes):
        logger.debug(
            "Probe '%s' matched (%s)", probes[index].selector, "shadow" if shadow else "light",
        )
    return value.strip()


class DomExtractor:
    """Resolves fields from the rendered DOM using a probe table."""

    def __init__(
        self,
        probes: ProbeTable,
        *,
        shadow_depth: int = 2,
        heuristics: Mapping[FieldKind, Vocabulary] = DEFAULT_HEURISTICS,
    ) -> None:
        self._probes = probes
        self._shadow_depth = shadow_depth
        self._heuristics = heuristics

    async def extract_field(self, page: Any, kind: FieldKind) -> str | None:
        """Return the first DOM match for a field, then the heuristic scan, else None."""
        value = await self._probe_scopes(page, self._probes.get(kind, ()))
        if value is None and kind in self._heuristics:
            value = scan_vocabulary(await self._visible_text(page), self._heuristics[kind])
            if value is not None:
                logger.debug("Heuristic scan resolved %s: %s", kind.value, value)
        return value

    async def extract_all(self, page: Any) -> DomResults:
        """Extract every probed field. The page text is read at most once."""
        results: DomResults = {}
        text: str | None = None
        text_loaded = False
        for kind in FieldKind:
            value = await self._probe_scopes(page, self._probes.get(kind, ()))
            if value is None and kind in self._heuristics:
                if not text_loaded:
                    text = await self._visible_text(page)
                    text_loaded = True
                value = scan_vocabulary(text, self._heuristics[kind])
            results[kind] = value

        if results.get(FieldKind.COMPANY) is None:
            parts = split_headline(results.get(FieldKind.TITLE))
            if parts is not None:
                results[FieldKind.TITLE], results[FieldKind.COMPANY] = parts
        return results

    async def _probe_scopes(self, page: Any, probes: tuple[Probe, ...]) -> str | None:
        if not probes:
            return None
        top = page.main_frame
        scopes: list[tuple[DocumentLike, bool]] = [(top, False)]
        if self._shadow_depth > 0:
            scopes.append((top, True))
        for frame in nested_documents(page):
            scopes.append((frame, False))
            if self._shadow_depth > 0:
                scopes.append((frame, True))

        for doc, shadow in scopes:
            value = await run_probes(doc, probes, shadow=shadow, max_depth=self._shadow_depth)
            if value is not None:
                return value
        return None

    async def _visible_text(self, page: Any) -> str:
        text = await safe_evaluate(page.main_frame, VISIBLE_TEXT_JS, self._shadow_depth)
        return text if isinstance(text, str) else ""
