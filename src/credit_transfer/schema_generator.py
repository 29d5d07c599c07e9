from __future__ import annotations

import argparse
import json
from typing import Any, Dict, List, Type

from .models.base import DBSerializableModel
from .models.credits import CreditPool
from .models.ledger import LedgerEntry
from .models.notification import NotificationEvent
from .models.transfer import TransferRecord


MODEL_REGISTRY: List[Type[DBSerializableModel]] = [
    CreditPool,
    TransferRecord,
    NotificationEvent,
    LedgerEntry,
]


def generate_logical_schema() -> Dict[str, Any]:
    """
    Generate a backend-agnostic logical schema for all registered models.
    This is the single source of truth; SQL/NoSQL specific renderers convert it.
    """
    return {model.collection_name: model.db_schema() for model in MODEL_REGISTRY}


def render_sql_ddl(schema: Dict[str, Any], dialect: str = "postgres") -> str:
    """
    Render CREATE TABLE statements, including unique constraints and the
    CHECK constraints the conditional updates depend on.
    """
    blocks: List[str] = []
    for table_name, table in schema.items():
        pk = table.get("primary_key") or "id"
        required = set(table.get("required", []))
        columns: List[str] = []
        for field_name, meta in table["properties"].items():
            sql_type = _map_logical_to_sql(meta["type"], dialect=dialect)
            nullable = "NOT NULL" if field_name in required or field_name == pk else "NULL"
            columns.append(f'    "{field_name}" {sql_type} {nullable}')
        columns.append(f'    PRIMARY KEY ("{pk}")')
        for field_name in table.get("unique", []):
            columns.append(f'    UNIQUE ("{field_name}")')
        columns.extend(_table_checks(table_name))
        blocks.append(
            f'CREATE TABLE IF NOT EXISTS "{table_name}" (\n' + ",\n".join(columns) + "\n);\n"
        )
    return "\n".join(blocks)


def render_nosql_schema(schema: Dict[str, Any]) -> str:
    """
    Render one MongoDB `$jsonSchema` validator and the unique indexes per
    collection, as JSON ready for `createCollection` / `collMod`.
    """
    collections: Dict[str, Any] = {}
    for name, table in schema.items():
        properties = {
            field_name: {"bsonType": _map_logical_to_bson(meta["type"], meta["nullable"])}
            for field_name, meta in table["properties"].items()
        }
        collections[name] = {
            "validator": {
                "$jsonSchema": {
                    "bsonType": "object",
                    "required": table.get("required", []),
                    "properties": properties,
                }
            },
            "indexes": [
                _unique_index(field_name, table["properties"][field_name]["nullable"])
                for field_name in table.get("unique", [])
            ],
        }
    return json.dumps(collections, indent=2, default=str)


def _unique_index(field_name: str, nullable: bool) -> Dict[str, Any]:
    index: Dict[str, Any] = {"key": {field_name: 1}, "unique": True}
    if nullable:
        # Unset values are omitted from documents and must not collide
        index["partialFilterExpression"] = {field_name: {"$exists": True}}
    return index


def _table_checks(table_name: str) -> List[str]:
    if table_name == CreditPool.collection_name:
        return ['    CHECK ("used_credits" >= 0 AND "used_credits" <= "total_credits")']
    if table_name == TransferRecord.collection_name:
        return [
            '    CHECK ("credits_amount" > 0)',
            "    CHECK (\"status\" IN ('pending', 'accepted', 'rejected', 'expired'))",
        ]
    return []


def _map_logical_to_sql(logical_type: str, dialect: str) -> str:
    logical_type = logical_type.lower()
    if logical_type == "integer":
        return "INTEGER"
    if logical_type == "number":
        return "DOUBLE PRECISION"
    if logical_type == "boolean":
        return "BOOLEAN"
    if logical_type == "string":
        return "TEXT"
    if logical_type in {"datetime", "date"}:
        return "TIMESTAMPTZ" if dialect == "postgres" else "TIMESTAMP"
    if logical_type in {"object", "array"}:
        return "JSONB" if dialect == "postgres" else "JSON"
    return "TEXT"


_BSON_TYPES: Dict[str, Any] = {
    "integer": ["int", "long"],
    "number": "double",
    "boolean": "bool",
    "string": "string",
    "datetime": "date",
    "object": "object",
    "array": "array",
}


def _map_logical_to_bson(logical_type: str, nullable: bool) -> Any:
    bson_type = _BSON_TYPES.get(logical_type.lower(), "string")
    if not nullable:
        return bson_type
    types = bson_type if isinstance(bson_type, list) else [bson_type]
    return [*types, "null"]


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Generate DB schemas for the credit transfer ledger."
    )
    parser.add_argument(
        "--backend",
        choices=["sql", "nosql"],
        required=True,
        help="Type of schema to generate.",
    )
    parser.add_argument(
        "--dialect",
        default="postgres",
        help="SQL dialect hint (e.g. postgres, mysql).",
    )
    args = parser.parse_args()

    schema = generate_logical_schema()

    if args.backend == "sql":
        print(render_sql_ddl(schema, dialect=args.dialect))
    else:
        print(render_nosql_schema(schema))


if __name__ == "__main__":
    main()
