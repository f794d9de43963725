"""
Comment bookkeeping for round-trip trees.

ruamel.yaml stores the full-line comments that sit between two entries on the
entry above them, as the tail of its end-of-line comment. When that entry is
a block mapping or sequence, the tail lives on its deepest last item instead.
Removing or inserting entries therefore has to move those lines so they stay
above the entry they describe.
"""

from typing import Any, Optional, Tuple

from ruamel.yaml.comments import CommentedMap, CommentedSeq
from ruamel.yaml.error import CommentMark
from ruamel.yaml.tokens import CommentToken

# Slot of the comment after an entry, and of the comments before it
_TRAILING = {CommentedMap: 2, CommentedSeq: 0}
_LEADING = 1
_ENTRY_SIZE = {CommentedMap: 4, CommentedSeq: 2}


def _commented_type(container: Any) -> Optional[type]:
    if isinstance(container, CommentedMap):
        return CommentedMap
    if isinstance(container, CommentedSeq):
        return CommentedSeq
    return None


def _is_block(node: Any) -> bool:
    return _commented_type(node) is not None and len(node) > 0 and not node.fa.flow_style()


def _entry(container: Any, key: Any) -> list:
    kind = _commented_type(container)
    return container.ca.items.setdefault(key, [None] * _ENTRY_SIZE[kind])


def trailing_slot(container: Any, key: Any) -> Optional[Tuple[Any, Any]]:
    """
    Find the (container, key) whose trailing comment ends the entry at key.

    Returns None for plain dicts and lists, which carry no comments.
    """
    if _commented_type(container) is None:
        return None
    holder, holder_key = container, key
    value = holder[holder_key]
    while _is_block(value):
        holder = value
        holder_key = list(value.keys())[-1] if isinstance(value, CommentedMap) else len(value) - 1
        value = holder[holder_key]
    return holder, holder_key


def following_lines(container: Any, key: Any) -> str:
    """Return the full-line comments stored after the entry at key."""
    token = _slot_token(trailing_slot(container, key))
    if token is None:
        return ""
    return token.value.partition("\n")[2]


def detach_following_lines(container: Any, key: Any) -> str:
    """Remove and return the full-line comments stored after the entry at key."""
    slot = trailing_slot(container, key)
    token = _slot_token(slot)
    if token is None:
        return ""

    own, newline, rest = token.value.partition("\n")
    if not rest:
        return ""
    if own:
        token.value = own + newline
    else:
        holder, holder_key = slot
        holder.ca.items[holder_key][_TRAILING[_commented_type(holder)]] = None
    return rest


def prepend_leading_lines(container: Any, key: Any, text: str) -> None:
    """Place comment lines directly above the entry at key."""
    if not text or _commented_type(container) is None:
        return
    entry = _entry(container, key)
    if entry[_LEADING] is None:
        entry[_LEADING] = []
    entry[_LEADING].insert(0, CommentToken(text, CommentMark(0), None))


def append_following_lines(container: Any, key: Any, text: str) -> None:
    """Place comment lines directly below the entry at key."""
    slot = trailing_slot(container, key)
    if not text or slot is None:
        return
    holder, holder_key = slot
    entry = _entry(holder, holder_key)
    index = _TRAILING[_commented_type(holder)]
    token = entry[index]
    if token is None:
        entry[index] = CommentToken("\n" + text, CommentMark(0), None)
        return
    value = token.value
    if not value.endswith("\n"):
        value += "\n"
    token.value = value + text


def _slot_token(slot: Optional[Tuple[Any, Any]]) -> Optional[CommentToken]:
    if slot is None:
        return None
    holder, holder_key = slot
    entry = holder.ca.items.get(holder_key)
    if not entry:
        return None
    return entry[_TRAILING[_commented_type(holder)]]
