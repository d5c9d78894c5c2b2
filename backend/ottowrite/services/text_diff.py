"""Word-level text diffing used by merge conflict detection and snapshot comparison."""

import difflib
import re
from dataclasses import asdict, dataclass
from typing import List


@dataclass
class DiffPart:
    """A run of text that was kept, added or removed."""
    value: str
    added: bool = False
    removed: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class DiffStats:
    additions: int
    deletions: int
    unchanged: int
    total_changes: int
    change_percentage: float

    def to_dict(self) -> dict:
        return asdict(self)


_SCRIPT_STYLE_RE = re.compile(r"<(script|style)[\s\S]*?>[\s\S]*?</\1>", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")
_SENTENCE_END_RE = re.compile(r"[.!?]+\s+")
_TOKEN_RE = re.compile(r"\S+|\s+")

_ENTITIES = (
    ("&nbsp;", " "),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#39;", "'"),
    ("&apos;", "'"),
    # Last, so "&amp;lt;" decodes to "&lt;" and not "<".
    ("&amp;", "&"),
)


def strip_html(html: str, preserve_whitespace: bool = False) -> str:
    """Strip tags and decode common entities for plain-text comparison."""
    text = _SCRIPT_STYLE_RE.sub("", html or "")
    text = _TAG_RE.sub(" ", text)
    for entity, char in _ENTITIES:
        text = text.replace(entity, char)
    if not preserve_whitespace:
        text = _WS_RE.sub(" ", text)
    return text.strip()


def split_sentences(text: str) -> List[str]:
    return [s.strip() for s in _SENTENCE_END_RE.split(text) if s.strip()]


def count_words(text: str) -> int:
    return len(text.split())


def compute_word_diff(old_text: str, new_text: str) -> List[DiffPart]:
    """Diff two texts word by word.

    Whitespace runs are tokens of their own so joining the values of the
    kept and removed parts reproduces *old_text*, and joining the kept and
    added parts reproduces *new_text*. A replaced run yields its removed
    part before its added part.
    """
    old_tokens = _TOKEN_RE.findall(old_text or "")
    new_tokens = _TOKEN_RE.findall(new_text or "")
    matcher = difflib.SequenceMatcher(None, old_tokens, new_tokens, autojunk=False)

    parts: List[DiffPart] = []
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            parts.append(DiffPart("".join(old_tokens[i1:i2])))
            continue
        if tag in ("replace", "delete"):
            parts.append(DiffPart("".join(old_tokens[i1:i2]), removed=True))
        if tag in ("replace", "insert"):
            parts.append(DiffPart("".join(new_tokens[j1:j2]), added=True))
    return parts


def calculate_diff_stats(diff: List[DiffPart]) -> DiffStats:
    additions = deletions = unchanged = 0
    for part in diff:
        words = count_words(part.value)
        if part.added:
            additions += words
        elif part.removed:
            deletions += words
        else:
            unchanged += words

    total_words = additions + deletions + unchanged
    total_changes = additions + deletions
    change_percentage = (total_changes / total_words) * 100 if total_words > 0 else 0.0

    return DiffStats(
        additions=additions,
        deletions=deletions,
        unchanged=unchanged,
        total_changes=total_changes,
        change_percentage=change_percentage,
    )


def compare_html_documents(old_html: str, new_html: str) -> tuple[List[DiffPart], DiffStats]:
    """Strip both documents to text, then diff and summarize."""
    diff = compute_word_diff(strip_html(old_html), strip_html(new_html))
    return diff, calculate_diff_stats(diff)


def has_significant_changes(old_html: str, new_html: str, threshold: float = 1.0) -> bool:
    _, stats = compare_html_documents(old_html, new_html)
    return stats.change_percentage >= threshold
