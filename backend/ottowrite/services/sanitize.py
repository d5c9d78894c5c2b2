"""Server-side HTML sanitization for editor content.

Removes active content (scripts, frames, plugins, inline handlers and
``javascript:`` / ``data:text/html`` URLs) while leaving formatting markup
and scene-anchor spans untouched.
"""

import re

_DANGEROUS_PATTERNS = [
    re.compile(r"<script[^>]*>[\s\S]*?</script>", re.IGNORECASE),
    re.compile(r"<iframe[^>]*>[\s\S]*?</iframe>", re.IGNORECASE),
    re.compile(r"<object[^>]*>[\s\S]*?</object>", re.IGNORECASE),
    re.compile(r"<embed[^>]*>", re.IGNORECASE),
    re.compile(r"<style[^>]*>[\s\S]*?</style>", re.IGNORECASE),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"\bon\w+\s*=\s*(\"[^\"]*\"|'[^']*'|[^\s>]+)", re.IGNORECASE),
    re.compile(r"data:text/html", re.IGNORECASE),
]

_XSS_PATTERNS = [
    re.compile(r"<script[^>]*>[\s\S]*?</script>", re.IGNORECASE),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"\bon\w+\s*=", re.IGNORECASE),
    re.compile(r"<iframe", re.IGNORECASE),
    re.compile(r"<object", re.IGNORECASE),
    re.compile(r"<embed", re.IGNORECASE),
    re.compile(r"data:text/html", re.IGNORECASE),
    re.compile(r"<svg[^>]*>[\s\S]*?</svg>", re.IGNORECASE),
]

_TAG_RE = re.compile(r"<[^>]*>")


def detect_xss_patterns(text: str) -> bool:
    if not text:
        return False
    return any(p.search(text) for p in _XSS_PATTERNS)


def sanitize_html(html: str, strip_all: bool = False) -> str:
    """Return *html* with active content removed.

    With ``strip_all`` every tag is dropped and plain text is returned.
    """
    if not html:
        return ""

    if strip_all:
        return _TAG_RE.sub("", html).strip()

    sanitized = html
    for pattern in _DANGEROUS_PATTERNS:
        sanitized = pattern.sub("", sanitized)
    return sanitized
