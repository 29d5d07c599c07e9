from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, ClassVar, Dict, Mapping, Optional, Union, get_args, get_origin

from pydantic import BaseModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DBSerializableModel(BaseModel):
    """
    Base for every stored record (pools, transfers, ledger entries,
    notifications).

    Records serialize themselves for the DB managers and describe their
    own columns; `schema_generator` turns that description into DDL or
    Mongo validators ahead of deployment.
    """

    # Collection / table name
    collection_name: ClassVar[str]

    primary_key: ClassVar[Optional[str]] = "id"

    # Unique besides the primary key; enforced by an index, not by the model
    unique_fields: ClassVar[tuple[str, ...]] = ()

    def serialize_for_db(self) -> Dict[str, Any]:
        """Stored shape: aliases applied, unset optional fields omitted."""
        return self.model_dump(by_alias=True, exclude_none=True)

    @classmethod
    def db_schema(cls) -> Dict[str, Any]:
        """
        Describe the record as `{collection_name, primary_key, unique,
        properties, required}` with logical column types.
        """
        fields: Mapping[str, Any] = cls.model_fields

        properties: Dict[str, Any] = {}
        required: list[str] = []

        for name, field in fields.items():
            properties[name] = {
                "type": cls._map_type(field.annotation),
                "nullable": not field.is_required(),
                "default": cls._schema_default(field.default),
                "description": field.description,
            }
            if field.is_required():
                required.append(name)

        return {
            "collection_name": cls.collection_name,
            "primary_key": cls.primary_key,
            "unique": list(cls.unique_fields),
            "properties": properties,
            "required": required,
        }

    @staticmethod
    def _schema_default(default: Any) -> Any:
        if default is None or not isinstance(default, (str, int, float, bool)):
            return None
        return getattr(default, "value", default)

    @classmethod
    def _map_type(cls, annotation: Any) -> str:
        """Logical type of an annotation: string, integer, number, boolean, datetime, array or object."""
        origin: Any = get_origin(annotation)
        if origin is Union:
            args = [a for a in get_args(annotation) if a is not type(None)]
            if len(args) == 1:
                return cls._map_type(args[0])
            return "object"
        if origin in (list, tuple, set):
            return "array"
        if origin is dict:
            return "object"

        if isinstance(annotation, type):
            if issubclass(annotation, bool):
                return "boolean"
            # str-backed enums are stored as strings
            if issubclass(annotation, str):
                return "string"
            if issubclass(annotation, int):
                return "integer"
            if issubclass(annotation, float):
                return "number"
            if issubclass(annotation, datetime):
                return "datetime"
            if issubclass(annotation, (dict, BaseModel)):
                return "object"

        name = getattr(annotation, "__name__", "object")
        return name.lower()
