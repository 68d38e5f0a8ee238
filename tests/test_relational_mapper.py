# ==============================================
# Tests for RelationalMapper
# ==============================================
#
# TEST CASES:
# -----------
# class TestColumns:
#     primary key, synthetic key, capped text key, nullability,
#     flattening, type conversion, schema variants
#
# class TestChildTables:
#     array child tables, scalar "value" columns, many-to-many junctions
#
# class TestIndexes:
#     primary key, unique candidates, partition key, composite,
#     workload-driven indexes
#
# class TestLinking:
#     foreign keys and foreign key indexes after deduplication
# ==============================================

import pytest

from docmigrate.mapping import (
    ChildTableType,
    IndexType,
    RelationalMapper,
    TransformationType,
)
from docmigrate.sources.base import ContainerMetadata, PerformanceMetrics, QueryMetric


def make_users(count=10):
    return [
        {
            "id": f"u{i}",
            "name": f"User {i}",
            "email": None if i == 0 else f"user{i}@example.com",
            "tier": "gold",
            "geo": {"lat": 1.5, "lng": 2.5},
            "orders": [{"sku": f"S{i}", "qty": 1}, {"sku": f"T{i}", "qty": 2}],
            "roleIds": ["r1", "r2"],
            "nicknames": ["a"],
        }
        for i in range(count)
    ]


def columns_by_name(mapping):
    return {m.target_column: m for m in mapping.field_mappings}


def index_by_name(mapping):
    return {index.name: index for index in mapping.indexes}


@pytest.fixture
def users(map_documents):
    return map_documents(make_users(), "users")


class TestColumns:
    def test_id_becomes_primary_key(self, users):
        assert users.target_table == "users"
        assert users.primary_key == "id"

        pk = users.field_mappings[0]
        assert pk.source_field == "id"
        assert pk.is_primary_key
        assert not pk.is_nullable
        assert pk.target_type == "NVARCHAR(50)"

    def test_synthetic_key_without_id(self, map_documents):
        mapping = map_documents([{"name": f"n{i}"} for i in range(5)])

        pk = mapping.field_mappings[0]
        assert mapping.primary_key == "Id"
        assert pk.source_field == "$generated"
        assert pk.target_type == "BIGINT IDENTITY(1,1)"
        assert pk.is_identity
        assert index_by_name(mapping)["PK_items"].columns == ["Id"]

    def test_oversized_text_key_is_capped(self, map_documents):
        mapping = map_documents([{"id": "x" * 5000 + str(i)} for i in range(5)])

        pk = mapping.field_mappings[0]
        assert pk.target_type == "NVARCHAR(450)"
        assert "capped" in pk.notes

    def test_nullability_follows_null_analysis(self, users):
        columns = columns_by_name(users)

        assert not columns["name"].is_nullable
        assert columns["email"].is_nullable

    def test_small_objects_are_flattened(self, users):
        columns = columns_by_name(users)

        lat = columns["geo_lat"]
        assert lat.source_field == "geo.lat"
        assert lat.target_type == "DECIMAL(18,2)"
        assert lat.transformation is TransformationType.FLATTEN
        assert not lat.is_nullable
        assert "geo_lng" in columns
        assert all(child.source_path != "geo" for child in users.child_tables)

        step = next(s for s in users.transformations if s.transformation_type is TransformationType.FLATTEN)
        assert step.source_path == "geo"
        assert step.target == "users.geo_lat, users.geo_lng"

    def test_mixed_types_are_converted(self, map_documents):
        documents = [{"id": str(i), "amount": i} for i in range(8)]
        documents += [{"id": "8", "amount": "n/a"}, {"id": "9", "amount": "tbd"}]

        mapping = map_documents(documents)

        amount = columns_by_name(mapping)["amount"]
        assert amount.target_type == "NVARCHAR(50)"
        assert amount.transformation is TransformationType.TYPE_CONVERT
        assert amount.notes.startswith("Mixed types")

        step = next(s for s in mapping.transformations if s.transformation_type is TransformationType.TYPE_CONVERT)
        assert step.source_path == "amount"
        assert step.target == "items.amount"

    def test_variant_fields_become_nullable_columns(self, map_documents):
        documents = [{"id": str(i), "name": "n", "email": f"e{i}@x.io"} for i in range(6)]
        documents += [{"id": str(i), "sku": f"S{i}", "price": 1.5, "dims": {"w": 1}} for i in range(6, 10)]

        mapping = map_documents(documents)
        columns = columns_by_name(mapping)

        for name in ("sku", "price"):
            assert columns[name].is_nullable
            assert "Only present in Schema_2" in columns[name].notes
        assert "dims" not in columns

        step = next(s for s in mapping.transformations if s.transformation_type is TransformationType.MERGE_VARIANT)
        assert step.source_path == "Schema_2"
        assert "sku, price" in step.description
        assert "dims need manual mapping" in step.description

    def test_estimated_rows_prefer_declared_count(self, map_documents):
        metadata = ContainerMetadata(name="users", document_count=5000)
        assert map_documents(make_users(), "users", metadata).estimated_rows == 5000
        assert map_documents(make_users(), "users").estimated_rows == 10


class TestChildTables:
    def test_array_of_objects(self, users):
        orders = next(c for c in users.child_tables if c.source_path == "orders")

        assert orders.child_type is ChildTableType.ARRAY
        assert orders.target_table == "users_orders"
        assert orders.parent_table == "users"
        assert orders.parent_key_column == "usersId"
        assert orders.parent_key_type == "NVARCHAR(50)"
        assert orders.parent_primary_key == "id"
        assert orders.rows_per_parent == 2.0
        assert [m.target_column for m in orders.field_mappings] == ["Id", "usersId", "sku", "qty"]
        assert [m.target_column for m in orders.data_columns] == ["sku", "qty"]

        split = next(s for s in users.transformations if s.source_path == "orders")
        assert split.transformation_type is TransformationType.SPLIT
        assert "one row per element" in split.description

    def test_scalar_array_gets_value_column(self, users):
        nicknames = next(c for c in users.child_tables if c.source_path == "nicknames")

        assert nicknames.child_type is ChildTableType.ARRAY
        value = nicknames.data_columns[0]
        assert value.target_column == "value"
        assert value.source_field == "nicknames"

    def test_id_arrays_become_junctions(self, users):
        roles = next(c for c in users.child_tables if c.source_path == "roleIds")

        assert roles.child_type is ChildTableType.MANY_TO_MANY
        assert roles.is_many_to_many
        assert roles.target_table == "users_Role_Junction"
        assert roles.linking_table.referenced_entity == "Role"
        assert roles.linking_table.reference_columns == ["value"]
        assert roles.linking_table.parent_key_column == "usersId"

    def test_keyword_array_of_objects_becomes_junction(self, map_documents):
        documents = [
            {"id": str(i), "memberships": [{"groupId": f"g{i}", "since": "2024-01-01"}]}
            for i in range(5)
        ]
        mapping = map_documents(documents, "people")

        memberships = mapping.child_tables[0]
        assert memberships.child_type is ChildTableType.MANY_TO_MANY
        assert memberships.target_table == "people_Group_Junction"
        assert memberships.linking_table.reference_columns == ["groupId"]
        assert memberships.linking_table.relationship_fields == ["since"]

    def test_plain_arrays_are_not_junctions(self, map_documents):
        documents = [{"id": str(i), "readings": [1, 2, 3]} for i in range(5)]
        mapping = map_documents(documents)
        assert mapping.child_tables[0].child_type is ChildTableType.ARRAY


class TestIndexes:
    def test_primary_key_index(self, users):
        pk = index_by_name(users)["PK_users"]
        assert pk.index_type is IndexType.CLUSTERED
        assert pk.priority == 1
        assert pk.columns == ["id"]

    def test_unique_candidate(self, users):
        assert [u.name for u in users.unique_constraints] == ["UK_users_email"]
        assert users.unique_constraints[0].columns == ["email"]

        index = index_by_name(users)["UK_users_email"]
        assert index.is_unique
        assert index.priority == 3

    def test_duplicated_field_is_not_a_unique_candidate(self, map_documents):
        documents = [{"id": str(i), "email": f"user{i % 5}@example.com"} for i in range(10)]
        mapping = map_documents(documents)
        assert mapping.unique_constraints == []

    def test_partition_key_index(self, map_documents):
        metadata = ContainerMetadata(name="users", partition_key="/tier")
        mapping = map_documents(make_users(), "users", metadata)

        index = index_by_name(mapping)["IX_users_tier"]
        assert index.priority == 2
        assert index.columns == ["tier"]
        assert columns_by_name(mapping)["tier"].is_partition_key
        assert all(u.columns != ["tier"] for u in mapping.unique_constraints)

    def test_composite_index(self, map_documents):
        metadata = ContainerMetadata(name="users", composite_indexes=[["/name", "/tier"]])
        mapping = map_documents(make_users(), "users", metadata)

        index = index_by_name(mapping)["IX_users_Composite_name_tier"]
        assert index.columns == ["name", "tier"]
        assert index.priority == 3

    def test_workload_indexes_need_selective_fields(self, map_documents):
        performance = PerformanceMetrics(
            average_ru_per_second=200.0,
            top_queries=[QueryMetric("SELECT * FROM c WHERE c.name = @n AND c.tier = @t")],
        )
        metadata = ContainerMetadata(name="users", query_fields=["email"], performance=performance)
        mapping = map_documents(make_users(), "users", metadata)
        indexes = index_by_name(mapping)

        name_index = indexes["IX_users_name"]
        assert name_index.priority == 4
        assert name_index.estimated_ru_impact == 10.0
        # tier has one distinct value; email already leads its unique index
        assert "IX_users_tier" not in indexes
        assert "IX_users_email" not in indexes


class TestLinking:
    def test_foreign_keys_for_child_tables(self, options, users):
        RelationalMapper(options).link_child_tables([users])

        foreign_keys = {fk.name: fk for fk in users.foreign_keys}
        assert set(foreign_keys) == {"FK_users_orders_usersId", "FK_users_nicknames_usersId"}

        fk = foreign_keys["FK_users_orders_usersId"]
        assert fk.child_table == "users_orders"
        assert fk.child_column == "usersId"
        assert fk.parent_table == "users"
        assert fk.parent_column == "id"
        assert fk.on_delete == "CASCADE"

    def test_child_table_indexes(self, options, users):
        RelationalMapper(options).link_child_tables([users])
        indexes = index_by_name(users)

        assert indexes["PK_users_orders"].index_type is IndexType.CLUSTERED
        assert indexes["PK_users_orders"].columns == ["Id"]
        assert indexes["IX_users_orders_usersId"].columns == ["usersId"]
        assert "PK_users_Role_Junction" in indexes
        assert len(indexes) == len(users.indexes)
