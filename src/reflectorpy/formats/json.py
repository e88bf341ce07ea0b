"""JSON format adapter."""

from __future__ import annotations

import json

from reflectorpy.member import SerializedMember


def to_json(member: SerializedMember, *, indent: int | None = 2) -> str:
    """Serialize a member tree to a JSON string.

    Args:
        member: The tree to serialize
        indent: JSON indentation level (default 2, None for compact)

    Returns:
        JSON string with ``name``, ``typeName``, ``fields``, ``props`` and
        ``value`` keys, empty keys omitted

    """
    return json.dumps(member.to_dict(), indent=indent)


def from_json(s: str) -> SerializedMember:
    """Deserialize a JSON string to a member tree.

    Args:
        s: JSON string to deserialize

    Returns:
        The member tree

    Raises:
        ValueError: If the JSON is not an object

    """
    data = json.loads(s)
    if not isinstance(data, dict):
        msg = "Expected a JSON object for a serialized member"
        raise ValueError(msg)
    return SerializedMember.from_dict(data)
