"""
Merge Patch Module

Builds JSON merge-patch documents for TaskRun annotations and applies them
(RFC 7386) for in-process resource stores.
"""

import copy
import json
from typing import Any, Dict


def get_annotations_patch(annotations: Dict[str, str]) -> bytes:
    """Serialize ``{"metadata": {"annotations": annotations}}`` as a merge-patch."""
    return json.dumps({"metadata": {"annotations": annotations}}, sort_keys=True).encode("utf-8")


def apply_merge_patch(target: Any, patch: Any) -> Any:
    """
    Apply a JSON merge-patch to ``target`` and return the result.

    Keys present in the patch are set, ``None`` values delete, and keys
    absent from the patch are left untouched. ``target`` is not modified.
    """
    if not isinstance(patch, dict):
        return copy.deepcopy(patch)

    result = copy.deepcopy(target) if isinstance(target, dict) else {}
    for key, value in patch.items():
        if value is None:
            result.pop(key, None)
        else:
            result[key] = apply_merge_patch(result.get(key), value)
    return result
