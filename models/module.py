"""
Module schemas.

A module is one manufactured unit inside a project. Projects store their
modules as a JSON array of camelCase objects; these schemas read that
shape, expose snake_case attributes, and write the same keys back.
"""

from typing import Any, Optional, Union
from pydantic import (
    AliasChoices,
    ConfigDict,
    Field,
    NonNegativeFloat,
    NonNegativeInt,
    ValidationError,
)

from exceptions import InvalidStoredModuleError
from models.base import BaseSchema


# Fields the importer may write, keyed by attribute name.
SEQUENCE_FIELD = "build_sequence"
IMPORTABLE_FIELDS = (
    "build_sequence",
    "blm_id",
    "rear_blm_id",
    "unit_type",
    "hitch_unit",
    "rear_unit",
    "hitch_room",
    "rear_room",
    "hitch_room_type",
    "rear_room_type",
    "is_prototype",
)

# Whole numbers, except prototypes slotted between two modules at a
# decimal position such as 12.1. Import and edit input stays integer.
StoredSequence = Union[NonNegativeInt, NonNegativeFloat]


class Module(BaseSchema):
    """
    A module as stored in a project's modules array.

    Unknown keys (difficulty flags, stage progress, ...) are kept as
    extras and written back untouched.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        extra="allow",
        coerce_numbers_to_str=True,
    )

    id: Optional[Union[int, str]] = Field(None, description="Stable module identifier")
    serial_number: Optional[str] = Field(
        None,
        alias="serialNumber",
        description="Serial number, usually YY-NNNN"
    )
    build_sequence: Optional[StoredSequence] = Field(
        None,
        alias="buildSequence",
        description="Manufacturing order within the project"
    )
    blm_id: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("hitchBLM", "blmId", "blm_id"),
        serialization_alias="hitchBLM",
        description="HITCH building/level/module location code"
    )
    rear_blm_id: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("rearBLM", "rearBlmId", "rear_blm_id"),
        serialization_alias="rearBLM",
    )
    is_prototype: bool = Field(False, alias="isPrototype")
    unit_type: Optional[str] = Field(None, alias="unitType")
    hitch_unit: Optional[str] = Field(None, alias="hitchUnit")
    rear_unit: Optional[str] = Field(None, alias="rearUnit")
    hitch_room: Optional[str] = Field(None, alias="hitchRoom")
    rear_room: Optional[str] = Field(None, alias="rearRoom")
    hitch_room_type: Optional[str] = Field(None, alias="hitchRoomType")
    rear_room_type: Optional[str] = Field(None, alias="rearRoomType")

    @property
    def is_sequenced(self) -> bool:
        """True when the module has a real (non-zero) build sequence."""
        return bool(self.build_sequence)

    def get_value(self, field: str) -> Any:
        """Read a declared attribute or a pass-through extra."""
        if field in type(self).model_fields:
            return getattr(self, field)
        return (self.model_extra or {}).get(field)

    def apply(self, updates: dict[str, Any]) -> "Module":
        """Return a copy with the given attribute/extra values replaced."""
        if not updates:
            return self
        return Module.model_validate({**self.model_dump(), **updates})

    def to_storage(self) -> dict:
        """Serialize back to the stored camelCase shape."""
        return self.model_dump(by_alias=True, exclude_none=True)


def load_modules(raw: Optional[list[dict]]) -> list[Module]:
    """
    Validate a stored modules array.

    Raises:
        InvalidStoredModuleError: naming the first module that fails
    """
    modules = []
    for index, item in enumerate(raw or []):
        try:
            modules.append(Module.model_validate(item))
        except ValidationError as e:
            serial = item.get("serialNumber") if isinstance(item, dict) else None
            raise InvalidStoredModuleError(index, serial, str(e.errors()[0]["msg"])) from e
    return modules


def dump_modules(modules: list[Module]) -> list[dict]:
    """Serialize modules for a whole-array write."""
    return [module.to_storage() for module in modules]
