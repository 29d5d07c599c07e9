from __future__ import annotations

import json

from credit_transfer.schema_generator import (
    generate_logical_schema,
    render_nosql_schema,
    render_sql_ddl,
)


def test_logical_schema_covers_all_collections():
    schema = generate_logical_schema()

    assert set(schema) == {
        "user_credits",
        "credit_transfers",
        "credit_notifications",
        "credit_ledger",
    }
    transfers = schema["credit_transfers"]
    assert transfers["unique"] == ["transfer_code"]
    assert transfers["properties"]["credits_amount"]["type"] == "integer"
    assert transfers["properties"]["expires_at"]["type"] == "datetime"
    assert transfers["properties"]["recipient"]["type"] == "object"
    assert transfers["properties"]["source_allocations"]["type"] == "array"
    assert transfers["properties"]["status"]["default"] == "pending"


def test_sql_ddl_has_constraints_for_conditional_updates():
    ddl = render_sql_ddl(generate_logical_schema())

    assert 'CREATE TABLE IF NOT EXISTS "user_credits"' in ddl
    assert 'CHECK ("used_credits" >= 0 AND "used_credits" <= "total_credits")' in ddl
    assert 'UNIQUE ("transfer_code")' in ddl
    assert '"expires_at" TIMESTAMPTZ NOT NULL' in ddl


def test_sql_ddl_for_other_dialects_avoids_postgres_types():
    ddl = render_sql_ddl(generate_logical_schema(), dialect="mysql")

    assert "TIMESTAMPTZ" not in ddl
    assert "JSONB" not in ddl


def test_nosql_schema_renders_mongo_validators_and_unique_indexes():
    rendered = json.loads(render_nosql_schema(generate_logical_schema()))

    pools = rendered["user_credits"]["validator"]["$jsonSchema"]
    assert {"user_id", "plan_id", "total_credits"} <= set(pools["required"])
    assert pools["properties"]["total_credits"]["bsonType"] == ["int", "long"]
    assert pools["properties"]["source_transfer_id"]["bsonType"] == ["string", "null"]
    assert rendered["credit_transfers"]["indexes"] == [
        {"key": {"transfer_code": 1}, "unique": True}
    ]
    assert rendered["user_credits"]["indexes"] == [
        {
            "key": {"source_transfer_id": 1},
            "unique": True,
            "partialFilterExpression": {"source_transfer_id": {"$exists": True}},
        }
    ]
