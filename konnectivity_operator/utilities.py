"""
Label and argument helpers shared by the resource reconcilers.
"""
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

LABEL_NAME = "kamaji.clastix.io/name"
LABEL_COMPONENT = "kamaji.clastix.io/component"


def kamaji_labels(control_plane_name: str, component: str) -> Dict[str, str]:
    """Ownership/discovery labels stamped on every object the operator manages."""
    return {
        LABEL_NAME: control_plane_name,
        LABEL_COMPONENT: component,
    }


def merge_maps(*maps: Optional[Dict[str, str]]) -> Dict[str, str]:
    """Merge label maps left to right; later maps win on key collision."""
    merged: Dict[str, str] = {}
    for m in maps:
        if m:
            merged.update(m)
    return merged


def args_from_list_to_map(args: Iterable[str]) -> Dict[str, str]:
    """
    Convert ["--flag=value", "--bool-flag"] into {"--flag": "value", "--bool-flag": ""}.
    Insertion order follows the input.
    """
    result: Dict[str, str] = {}
    for arg in args:
        flag, _, value = arg.partition("=")
        result[flag] = value
    return result


def args_from_map_to_list(args: Dict[str, str]) -> List[str]:
    """Serialize a flag map back to a sorted argument list."""
    result = []
    for flag, value in args.items():
        if value == "":
            result.append(flag)
        else:
            result.append(f"{flag}={value}")
    return sorted(result)


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
