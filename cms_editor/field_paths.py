"""
Field path utilities for nested content documents.

A content document is a tree of dicts (objects), lists (repeatable groups)
and scalars. Form inputs address values inside that tree with path strings
such as ``heroBanner.ctaButtons.primary.text`` or ``navigation[2].children[0].href``.
The dotted-index form used by browser form libraries (``navigation.2.href``)
is accepted as well.
"""

import re
import logging
from typing import Any, Iterator, Tuple, Union

from .exceptions import FieldPathError

logger = logging.getLogger(__name__)

PathToken = Union[str, int]
PathLike = Union[str, Tuple[PathToken, ...], list]

_TOKEN_RE = re.compile(r"(?:^|\.)([^.\[\]]+)|\[(\d+)\]")
_DEEPDIFF_TOKEN_RE = re.compile(r"\[(?:'([^']*)'|\"([^\"]*)\"|(\d+))\]")

_MISSING = object()


def parse_path(path: PathLike) -> Tuple[PathToken, ...]:
    """
    Split a field path into keys and list indices.

    Args:
        path: Path string (``a.b[0].c`` or ``a.b.0.c``) or an already split sequence

    Returns:
        Tuple of tokens; strings are object keys, ints are list indices

    Raises:
        FieldPathError: If the string is malformed
    """
    if isinstance(path, (tuple, list)):
        return tuple(path)
    if path is None or path == "":
        return ()

    tokens = []
    position = 0
    for match in _TOKEN_RE.finditer(path):
        if match.start() != position:
            raise FieldPathError(path, f"unexpected character at position {position}")
        name, index = match.groups()
        if index is not None:
            tokens.append(int(index))
        elif name.isdigit():
            tokens.append(int(name))
        else:
            tokens.append(name)
        position = match.end()

    if position != len(path):
        raise FieldPathError(path, f"unexpected character at position {position}")

    return tuple(tokens)


def format_path(tokens: PathLike) -> str:
    """Render tokens in the canonical ``a.b[0].c`` form."""
    if isinstance(tokens, str):
        tokens = parse_path(tokens)

    parts = []
    for token in tokens:
        if isinstance(token, int):
            parts.append(f"[{token}]")
        elif parts:
            parts.append(f".{token}")
        else:
            parts.append(str(token))
    return "".join(parts)


def join_path(base: PathLike, *tokens: PathToken) -> str:
    """Append tokens to a base path and return the canonical string."""
    return format_path(parse_path(base) + tuple(tokens))


def from_deepdiff_path(deepdiff_path: str) -> str:
    """Convert a DeepDiff path such as ``root['logo']['url']`` to ``logo.url``."""
    body = deepdiff_path[4:] if deepdiff_path.startswith("root") else deepdiff_path
    tokens = []
    for match in _DEEPDIFF_TOKEN_RE.finditer(body):
        single, double, index = match.groups()
        if index is not None:
            tokens.append(int(index))
        else:
            tokens.append(single if single is not None else double)
    return format_path(tokens)


def get_value(tree: Any, path: PathLike, default: Any = None) -> Any:
    """
    Resolve a path inside a document tree.

    Missing keys, out-of-range indices and type mismatches along the way
    return ``default`` rather than raising.
    """
    current = tree
    for token in parse_path(path):
        if isinstance(token, int):
            if not isinstance(current, list) or token >= len(current):
                return default
            current = current[token]
        else:
            if not isinstance(current, dict) or token not in current:
                return default
            current = current[token]
    return current


def has_value(tree: Any, path: PathLike) -> bool:
    """Return True if every segment of the path exists in the tree."""
    return get_value(tree, path, _MISSING) is not _MISSING


def set_value(tree: Any, path: PathLike, value: Any) -> None:
    """
    Assign ``value`` at ``path`` in place.

    Missing intermediate objects are created. List indices must already
    exist; growing a list is the job of the repeatable group controller.

    Raises:
        FieldPathError: If the path is empty or crosses a scalar or a missing list slot
    """
    tokens = parse_path(path)
    if not tokens:
        raise FieldPathError("", "cannot assign to the document root, use reset instead")

    current = tree
    for position, token in enumerate(tokens[:-1]):
        next_token = tokens[position + 1]
        current = _step_into(current, token, next_token, tokens)

    last = tokens[-1]
    if isinstance(last, int):
        if not isinstance(current, list) or last >= len(current):
            raise FieldPathError(format_path(tokens), f"list index {last} does not exist")
        current[last] = value
    else:
        if not isinstance(current, dict):
            raise FieldPathError(format_path(tokens), f"'{last}' is not inside an object")
        current[last] = value


def _step_into(current: Any, token: PathToken, next_token: PathToken, tokens: Tuple[PathToken, ...]) -> Any:
    if isinstance(token, int):
        if not isinstance(current, list) or token >= len(current):
            raise FieldPathError(format_path(tokens), f"list index {token} does not exist")
        return current[token]

    if not isinstance(current, dict):
        raise FieldPathError(format_path(tokens), f"'{token}' is not inside an object")

    child = current.get(token)
    if child is None:
        if isinstance(next_token, int):
            raise FieldPathError(format_path(tokens), f"list '{token}' does not exist")
        child = {}
        current[token] = child
    return child


def iter_leaf_paths(tree: Any, prefix: Tuple[PathToken, ...] = ()) -> Iterator[Tuple[str, Any]]:
    """Yield ``(path, value)`` for every scalar in the tree, depth first."""
    if isinstance(tree, dict):
        for key, child in tree.items():
            yield from iter_leaf_paths(child, prefix + (key,))
    elif isinstance(tree, list):
        for index, child in enumerate(tree):
            yield from iter_leaf_paths(child, prefix + (index,))
    elif prefix:
        yield format_path(prefix), tree
