"""Document traversal: the top document, its shadow trees, and same-origin frames.

Nested documents are visited in Python (frame tree walk). Shadow trees are
walked in page context by the scripts below, bounded by a depth argument.
Both the real patchright ``Frame`` and test doubles satisfy ``DocumentLike``.
"""

import logging
from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

MAX_FRAME_DEPTH = 2


@runtime_checkable
class DocumentLike(Protocol):
    """Minimal frame interface the extractors rely on."""

    @property
    def url(self) -> str: ...

    @property
    def child_frames(self) -> Sequence["DocumentLike"]: ...

    async def evaluate(self, expression: str, arg: Any = None) -> Any: ...


# --- Page-context scripts ---

_SHADOW_ROOTS_FN = """
const shadowRoots = (maxDepth) => {
  const found = [];
  const walk = (root, depth) => {
    if (depth > maxDepth) return;
    for (const el of root.querySelectorAll('*')) {
      if (el.shadowRoot) {
        found.push(el.shadowRoot);
        walk(el.shadowRoot, depth + 1);
      }
    }
  };
  walk(document, 1);
  return found;
};
"""

COLLECT_ANCHORS_JS = (
    "(maxDepth) => {"
    + _SHADOW_ROOTS_FN
    + """
  const headingSel = 'h1, h2, h3, h4, [data-ui="job-card-title"], [data-ui="job-title"]';
  const out = [];
  for (const root of [document, ...shadowRoots(maxDepth)]) {
    for (const a of root.querySelectorAll('a[href]')) {
      let heading = a.querySelector(headingSel);
      if (!heading) {
        const card = a.closest('li, article, [data-ui="job-card"]');
        heading = card ? card.querySelector(headingSel) : null;
      }
      out.push({ href: a.href, text: ((heading || a).textContent || '').trim() });
    }
  }
  return out;
}"""
)

PROBE_JS = (
    "({ probes, shadow, maxDepth }) => {"
    + _SHADOW_ROOTS_FN
    + """
  const roots = shadow ? shadowRoots(maxDepth) : [document];
  const capture = (el, probe) => {
    switch (probe.capture) {
      case 'html':
        return el.innerHTML;
      case 'datetime':
        return el.getAttribute('datetime') || el.textContent;
      case 'icon_label': {
        const use = el.querySelector('svg use');
        const ref = use ? (use.getAttribute('xlink:href') || use.getAttribute('href') || '') : '';
        return ref.includes(probe.attribute) ? el.textContent : null;
      }
      default:
        return el.textContent;
    }
  };
  for (let i = 0; i < probes.length; i++) {
    for (const root of roots) {
      let nodes;
      try {
        nodes = root.querySelectorAll(probes[i].selector);
      } catch (e) {
        continue;
      }
      for (const el of nodes) {
        const value = capture(el, probes[i]);
        if (value && value.trim()) return { index: i, value: value.trim() };
      }
    }
  }
  return null;
}"""
)

STRUCTURED_BLOCKS_JS = (
    "(maxDepth) => {"
    + _SHADOW_ROOTS_FN
    + """
  const sel = 'script[type="application/ld+json"]';
  const out = [];
  for (const root of [document, ...shadowRoots(maxDepth)]) {
    for (const s of root.querySelectorAll(sel)) out.push(s.textContent || '');
  }
  return out;
}"""
)

VISIBLE_TEXT_JS = (
    "(maxDepth) => {"
    + _SHADOW_ROOTS_FN
    + """
  const parts = [document.body ? document.body.innerText : ''];
  for (const root of shadowRoots(maxDepth)) parts.push(root.textContent || '');
  return parts.join('\\n');
}"""
)


# --- Frame visitor ---


def same_origin(url_a: str, url_b: str) -> bool:
    """Scheme + host + port equality. ``about:`` documents inherit their parent's origin."""
    if url_a.startswith("about:") or url_b.startswith("about:"):
        return True
    a, b = urlparse(url_a), urlparse(url_b)
    return (a.scheme, a.netloc) == (b.scheme, b.netloc)


def nested_documents(page: Any, max_depth: int = MAX_FRAME_DEPTH) -> list[DocumentLike]:
    """Same-origin descendant frames of the page, depth-first, in DOM order."""
    top = page.main_frame
    found: list[DocumentLike] = []

    def visit(frame: DocumentLike, depth: int) -> None:
        if depth > max_depth:
            return
        for child in frame.child_frames:
            if not same_origin(top.url, child.url):
                logger.debug("Skipping cross-origin frame %s", child.url)
                continue
            found.append(child)
            visit(child, depth + 1)

    visit(top, 1)
    return found


def all_documents(page: Any, max_depth: int = MAX_FRAME_DEPTH) -> list[DocumentLike]:
    """The top document followed by its same-origin nested documents."""
    return [page.main_frame, *nested_documents(page, max_depth)]


async def safe_evaluate(doc: DocumentLike, script: str, arg: Any = None) -> Any:
    """Evaluate in one document. A failing document yields None, not an error."""
    try:
        return await doc.evaluate(script, arg)
    except Exception:
        logger.debug("Evaluation failed in %s", getattr(doc, "url", "?"), exc_info=True)
        return None


async def evaluate_each(page: Any, script: str, arg: Any = None) -> list[Any]:
    """Evaluate a script in every reachable document; failed documents are skipped."""
    results: list[Any] = []
    for doc in all_documents(page):
        value = await safe_evaluate(doc, script, arg)
        if value is not None:
            results.append(value)
    return results
