"""Client-side content hash (mirrors the backend algorithm).

The server compares this value against the hash of what it has stored, so
both sides must serialize identically: sorted keys, no whitespace, UTF-8,
empty outline as ``[]``, anchor ids sorted and de-duplicated.
"""

import hashlib
import json
import re
from typing import Any, Iterable, Optional


def compute_content_hash(
    html: Optional[str],
    structure: Any,
    anchor_ids: Optional[Iterable[str]] = None,
) -> str:
    canonical = {
        "html": html or "",
        "structure": structure or [],
        "anchorIds": sorted(set(anchor_ids or [])),
    }
    encoded = json.dumps(
        canonical, sort_keys=True, separators=(",", ":"), ensure_ascii=False
    ).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()


_ANCHOR_SPAN_RE = re.compile(
    r"""<span[^>]*data-scene-anchor=["']true["'][^>]*data-scene-id=["']([^"']+)["'][^>]*>""",
    re.IGNORECASE,
)


def extract_anchor_ids(html: Optional[str]) -> list[str]:
    """Scene ids of every scene-anchor span in *html*, first-seen order."""
    if not html:
        return []
    return list(dict.fromkeys(m.group(1) for m in _ANCHOR_SPAN_RE.finditer(html)))
