"""Content fingerprinting and word counting for stored documents.

Pure functions, no DB access. The autosave protocol uses
``compute_content_hash`` as its optimistic-concurrency token: a client
remembers the hash of the last content it synced and sends it back as
``base_hash``; the server recomputes the hash of what is stored and
compares.

The hash input is a canonical JSON object, so it only changes when the
html, the outline structure or the set of scene anchors changes. Dict key
order and anchor order do not matter.
"""

import hashlib
import json
import re
from typing import Any, Iterable, List, Optional

_TAG_RE = re.compile(r"<[^>]*>")
_ANCHOR_SPAN_RE = re.compile(
    r"""<span[^>]*data-scene-anchor=["']true["'][^>]*data-scene-id=["']([^"']+)["'][^>]*>""",
    re.IGNORECASE,
)

PREVIEW_LENGTH = 500


def normalize_structure(structure: Any) -> Any:
    """Map empty or missing outlines to ``[]``."""
    if not structure:
        return []
    return structure


def normalize_anchor_ids(anchor_ids: Any) -> List[str]:
    """Keep string ids only, de-duplicated in first-seen order."""
    if not isinstance(anchor_ids, list):
        return []
    return list(dict.fromkeys(a for a in anchor_ids if isinstance(a, str)))


def extract_anchor_ids(html: Optional[str]) -> List[str]:
    """Return the scene ids of every scene-anchor span in *html*."""
    if not html:
        return []
    return list(dict.fromkeys(m.group(1) for m in _ANCHOR_SPAN_RE.finditer(html)))


def compute_content_hash(
    html: Optional[str],
    structure: Any,
    anchor_ids: Optional[Iterable[str]] = None,
) -> str:
    """SHA-256 hex digest of the canonical form of a document state."""
    canonical = {
        "html": html or "",
        "structure": normalize_structure(structure),
        "anchorIds": sorted(set(anchor_ids or [])),
    }
    encoded = json.dumps(
        canonical, sort_keys=True, separators=(",", ":"), ensure_ascii=False
    ).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()


def content_html(content: Optional[dict]) -> str:
    html = (content or {}).get("html")
    return html if isinstance(html, str) else ""


def hash_document_content(content: Optional[dict]) -> str:
    """Hash a stored content blob; anchors are read from its html."""
    html = content_html(content)
    structure = normalize_structure((content or {}).get("structure"))
    return compute_content_hash(html, structure, extract_anchor_ids(html))


def strip_tags(html: Optional[str]) -> str:
    if not html:
        return ""
    return _TAG_RE.sub(" ", html)


def count_words(html: Optional[str]) -> int:
    """Count whitespace-separated words in *html* after dropping tags."""
    return len(strip_tags(html).split())


def count_screenplay_words(elements: Any) -> int:
    if not isinstance(elements, list):
        return 0
    total = 0
    for element in elements:
        if not isinstance(element, dict):
            continue
        text = element.get("content") or element.get("text") or ""
        if isinstance(text, str):
            total += len(text.split())
    return total


def compute_word_count(content: Optional[dict]) -> int:
    """Word count of a content blob: prose html first, then screenplay."""
    content = content or {}
    html = content.get("html")
    if isinstance(html, str) and html:
        return count_words(html)
    if isinstance(content.get("screenplay"), list):
        return count_screenplay_words(content["screenplay"])
    return 0


def count_scenes(structure: Any) -> int:
    """Total scenes across all chapters of an outline."""
    if not isinstance(structure, list):
        return 0
    return sum(
        len(chapter.get("scenes") or [])
        for chapter in structure
        if isinstance(chapter, dict)
    )


def generate_content_preview(content: Optional[dict], length: int = PREVIEW_LENGTH) -> str:
    """Plain-text preview of a content blob for list views."""
    content = content or {}
    html = content.get("html")
    if isinstance(html, str) and html:
        text = " ".join(strip_tags(html).split())
    elif isinstance(content.get("screenplay"), list):
        text = " ".join(
            str(e.get("content") or e.get("text") or "")
            for e in content["screenplay"]
            if isinstance(e, dict)
        ).strip()
    else:
        text = ""
    if len(text) > length:
        return text[:length] + "..."
    return text
