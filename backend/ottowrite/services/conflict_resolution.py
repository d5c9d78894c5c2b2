"""Conflict detection and resolution for autosave and branch merges.

Nothing here merges text intelligently. Conflicts are resolved by picking
one side or by concatenating both ("keep both").
"""

import copy
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..schemas.autosave import ConflictStrategy
from ..schemas.branch import MergeStrategy
from .text_diff import calculate_diff_stats, compute_word_diff


@dataclass
class ContentState:
    """The parts of a prose document covered by the content hash."""
    html: str = ""
    structure: List[Any] = field(default_factory=list)
    anchor_ids: List[str] = field(default_factory=list)


def _merge_structure(first: List[Any], second: List[Any]) -> List[Any]:
    """*first* followed by the entries of *second* whose id is not already present."""
    merged = copy.deepcopy(first or [])
    seen = {e.get("id") for e in merged if isinstance(e, dict) and e.get("id")}
    for entry in second or []:
        entry_id = entry.get("id") if isinstance(entry, dict) else None
        if entry_id and entry_id in seen:
            continue
        merged.append(copy.deepcopy(entry))
    return merged


def resolve_autosave_conflict(
    local: ContentState, server: ContentState, strategy: ConflictStrategy
) -> ContentState:
    """Apply the user's choice between their unsaved edits and the server version."""
    if strategy == ConflictStrategy.KEEP_LOCAL:
        return copy.deepcopy(local)
    if strategy == ConflictStrategy.KEEP_SERVER:
        return copy.deepcopy(server)

    html = server.html
    if local.html and local.html != server.html:
        html = f"{server.html}\n{local.html}" if server.html else local.html
    return ContentState(
        html=html,
        structure=_merge_structure(server.structure, local.structure),
        anchor_ids=list(dict.fromkeys([*server.anchor_ids, *local.anchor_ids])),
    )


def detect_merge_conflicts(source: Optional[dict], target: Optional[dict]) -> List[Dict[str, Any]]:
    """List the fields that differ between two branch contents.

    ``html`` conflicts when a word diff of the two bodies finds any change;
    ``screenplay`` conflicts when the element arrays are not identical.
    Fields present on only one side are not conflicts.
    """
    source = source or {}
    target = target or {}
    conflicts: List[Dict[str, Any]] = []

    if source.get("html") and target.get("html"):
        stats = calculate_diff_stats(compute_word_diff(target["html"], source["html"]))
        if stats.total_changes > 0:
            conflicts.append({
                "type": "html",
                "field": "html",
                "source_value": source["html"],
                "target_value": target["html"],
                "stats": stats.to_dict(),
            })

    if source.get("screenplay") and target.get("screenplay"):
        if _canonical(source["screenplay"]) != _canonical(target["screenplay"]):
            conflicts.append({
                "type": "screenplay",
                "field": "screenplay",
                "source_value": source["screenplay"],
                "target_value": target["screenplay"],
            })

    return conflicts


def _canonical(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"))


def apply_merge_resolutions(
    source: dict, target: dict, resolutions: Dict[str, MergeStrategy]
) -> dict:
    """Build merged content from per-field choices.

    The result starts from the source content (a merge without conflicts
    takes the source side). Each resolved field is then replaced by the
    target value, the source value, or both concatenated target first.
    """
    merged = copy.deepcopy(source or {})
    for field_name, strategy in resolutions.items():
        source_value = (source or {}).get(field_name)
        target_value = (target or {}).get(field_name)
        if strategy == MergeStrategy.TARGET:
            merged[field_name] = copy.deepcopy(target_value)
        elif strategy == MergeStrategy.SOURCE:
            merged[field_name] = copy.deepcopy(source_value)
        elif isinstance(target_value, list) or isinstance(source_value, list):
            merged[field_name] = copy.deepcopy([*(target_value or []), *(source_value or [])])
        else:
            merged[field_name] = "\n".join(v for v in (target_value, source_value) if v)
    return merged
