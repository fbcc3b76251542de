"""
Header alias table for module import files.

Each canonical field lists the normalized header names that map to it.
Includes the headers written by the sequence export so an exported file
imports cleanly. The reverse lookup is built once at import time and
refuses aliases claimed by two fields.
"""

from typing import Optional

from exceptions import HeaderAliasCollisionError
from utils.text_utils import normalize_header

SERIAL_FIELD = "serial_number"

HEADER_ALIASES: dict[str, frozenset[str]] = {
    "serial_number": frozenset({
        "serial number", "serial_number", "serial", "serial #", "serial no",
    }),
    "build_sequence": frozenset({
        "build sequence", "build_sequence", "sequence", "build seq", "seq",
    }),
    "blm_id": frozenset({
        "blm id", "blm_id", "blm", "hitch blm id", "hitch blm", "hitch_blm_id",
    }),
    "rear_blm_id": frozenset({
        "rear blm id", "rear blm", "rear_blm_id",
    }),
    "unit_type": frozenset({
        "unit type", "unit_type", "type",
    }),
    "hitch_unit": frozenset({
        "hitch unit", "hitch_unit",
    }),
    "rear_unit": frozenset({
        "rear unit", "rear_unit",
    }),
    "hitch_room": frozenset({
        "hitch room", "hitch_room",
    }),
    "rear_room": frozenset({
        "rear room", "rear_room",
    }),
    "hitch_room_type": frozenset({
        "hitch room type", "hitch_room_type", "hitch type",
    }),
    "rear_room_type": frozenset({
        "rear room type", "rear_room_type", "rear type",
    }),
    "is_prototype": frozenset({
        "proto", "prototype", "is prototype", "is_prototype",
    }),
}


def build_alias_lookup(table: dict[str, frozenset[str]]) -> dict[str, str]:
    """
    Invert an alias table to alias → canonical field.

    Raises:
        HeaderAliasCollisionError: If one alias belongs to two fields
    """
    lookup: dict[str, str] = {}
    for field, aliases in table.items():
        for alias in aliases:
            key = normalize_header(alias)
            owner = lookup.get(key)
            if owner is not None and owner != field:
                raise HeaderAliasCollisionError(key, [owner, field])
            lookup[key] = field
    return lookup


ALIAS_LOOKUP = build_alias_lookup(HEADER_ALIASES)


def resolve_header(header: Optional[str]) -> str:
    """
    Map a raw header to its canonical field.

    Unknown headers come back in normalized form so extra columns are
    carried through under a predictable name.
    """
    key = normalize_header(header)
    return ALIAS_LOOKUP.get(key, key)
