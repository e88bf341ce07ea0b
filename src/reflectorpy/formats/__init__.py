"""Format adapters for serialized member trees.

Each format module provides to_<format> and from_<format> functions that
work on the wire shape produced by ``SerializedMember.to_dict``.
"""

from reflectorpy.formats.json import from_json, to_json

__all__ = ["from_json", "to_json"]
