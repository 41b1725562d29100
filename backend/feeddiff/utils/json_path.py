import re
from typing import Any, List, Sequence, Union

from feeddiff.utils.values import ABSENT, is_array, is_object

PathToken = Union[str, int]

_TOKEN_RE = re.compile(r"\[([0-9]+)\]|[^.\[\]]+")
_INDEX_RE = re.compile(r"[0-9]+")


def parse_json_path(path: str) -> List[PathToken]:
    """
    Parse JSON path string into list of keys.

    Examples:
        "customer.name" -> ["customer", "name"]
        "addresses[0].city" -> ["addresses", 0, "city"]
        "[2].id" -> [2, "id"]
    """
    if not path:
        return []

    tokens: List[PathToken] = []
    for match in _TOKEN_RE.finditer(path):
        index = match.group(1)
        if index is not None:
            tokens.append(int(index))
        else:
            tokens.append(match.group(0))
    return tokens


def _step(current: Any, token: PathToken) -> Any:
    if is_object(current):
        key = token if isinstance(token, str) else str(token)
        return current[key] if key in current else ABSENT
    if is_array(current):
        if isinstance(token, str):
            if not _INDEX_RE.fullmatch(token):
                return ABSENT
            token = int(token)
        if 0 <= token < len(current):
            return current[token]
    return ABSENT


def get_by_path(obj: Any, path: str) -> Any:
    """
    Resolve a textual path against a tree value.

    Returns ABSENT (never raises) when any step hits a missing key, an index
    out of range or a non-collection. A present null is returned as None.
    """
    return get_by_tokens(obj, parse_json_path(path))


def get_by_tokens(obj: Any, tokens: Sequence[PathToken]) -> Any:
    """Like get_by_path, for already split tokens (keys may contain dots)."""
    current = obj
    for token in tokens:
        current = _step(current, token)
        if current is ABSENT:
            return ABSENT
    return current


def get_value_at_path(obj: Any, path_parts: List[PathToken]) -> Any:
    """
    Get value from nested object at specified path.

    Args:
        obj: The JSON object (dict/list)
        path_parts: List of keys/indices from parse_json_path

    Returns:
        Value at path

    Raises:
        KeyError: if path doesn't exist
    """
    current = obj

    for i, part in enumerate(path_parts):
        if not (is_object(current) or is_array(current)):
            prefix = format_json_path(path_parts[:i])
            raise KeyError(f"Path not found at '{prefix}' (leaf node)")
        current = _step(current, part)
        if current is ABSENT:
            raise KeyError(f"Path not found at '{format_json_path(path_parts[:i + 1])}'")

    return current


def format_json_path(parts: Sequence[PathToken]) -> str:
    text = ""
    for part in parts:
        if isinstance(part, int):
            text += f"[{part}]"
        else:
            text += f".{part}" if text else part
    return text
