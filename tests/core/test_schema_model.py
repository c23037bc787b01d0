"""Tests for table descriptors derived from entity dataclasses."""

import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from uuid import UUID

import pytest

from binstore.core.errors import EntityDefinitionError, UnsupportedTypeError
from binstore.core.schema import FieldType, column, describe, registered_entities, table
from binstore.models import ENTITIES, Part, StoredFile
from tests._support.entities import Finish, Gadget, Widget


class TestDerivation:
    """Annotations map to semantic field types."""

    @pytest.mark.parametrize(
        "name, kind, python_type",
        [
            ("WidgetId", FieldType.INT64, int),
            ("Name", FieldType.TEXT, str),
            ("Rank", FieldType.INT16, int),
            ("Price", FieldType.DECIMAL, Decimal),
            ("Weight", FieldType.FLOAT, float),
            ("Active", FieldType.BOOLEAN, bool),
            ("Surface", FieldType.ENUM, Finish),
            ("Tags", FieldType.TEXT_COLLECTION, list),
            ("Lead", FieldType.DURATION, timedelta),
            ("Token", FieldType.UUID, UUID),
            ("Blob", FieldType.BYTES, bytes),
            ("CreatedUtc", FieldType.DATETIME, datetime),
        ],
    )
    def test_field_kinds(self, name, kind, python_type):
        f = describe(Widget).field(name)
        assert f.kind is kind
        assert f.python_type is python_type

    def test_optional_marks_nullable(self):
        t = describe(Widget)
        assert t.field("Weight").nullable
        assert t.field("UserId").nullable
        assert not t.field("Quantity").nullable

    def test_key(self):
        t = describe(Widget)
        assert t.key.name == "WidgetId"
        assert t.key.is_key
        assert t.key.is_auto_increment

    def test_text_key_is_not_generated(self):
        key = describe(Gadget).key
        assert key.name == "Code"
        assert key.max_length == 32
        assert not key.is_auto_increment

    def test_tuple_collection(self):
        f = describe(Gadget).field("Aliases")
        assert f.is_collection
        assert f.python_type is tuple

    def test_enum_type_recorded(self):
        assert describe(Widget).field("Surface").enum_type is Finish

    def test_field_order_follows_declaration(self):
        assert describe(Widget).field_names[:3] == ("WidgetId", "Name", "Quantity")

    def test_owner(self):
        t = describe(Widget)
        assert t.owner == "UserId"
        assert t.owner_field.name == "UserId"
        assert describe(Gadget).owner_field is None

    def test_field_lookup_is_case_sensitive(self):
        t = describe(Widget)
        assert t.has_field("Name")
        assert not t.has_field("name")
        with pytest.raises(KeyError):
            t.field("name")


class TestSortable:
    def test_explicit_allow_list(self):
        assert describe(Widget).sortable == ("Name", "Quantity", "Price", "CreatedUtc")

    def test_default_excludes_collections_and_bytes(self):
        assert describe(Gadget).sortable == ("Code", "Label", "Count")

    def test_inventory_part_allow_list(self):
        sortable = describe(Part).sortable
        assert "PartNumber" in sortable
        assert "Keywords" not in sortable


class TestCache:
    def test_describe_is_cached(self):
        assert describe(Widget) is describe(Widget)

    def test_concurrent_describe_builds_once(self):
        @table("Sprockets")
        @dataclass
        class Sprocket:
            SprocketId: int = column(key=True, default=0)

        results = []
        threads = [
            threading.Thread(target=lambda: results.append(describe(Sprocket))) for _ in range(8)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len({id(r) for r in results}) == 1

    def test_registry(self):
        registered = registered_entities()
        assert Widget in registered
        for entity in ENTITIES:
            assert entity in registered

    def test_inventory_entities_describe(self):
        for entity in ENTITIES:
            assert describe(entity).key is not None
        assert describe(StoredFile).field("StoredFileType").kind is FieldType.ENUM


class TestDefinitionErrors:
    """Mistakes in an entity surface as typed errors on first describe()."""

    def test_unregistered(self):
        @dataclass
        class Loose:
            Id: int = column(key=True, default=0)

        with pytest.raises(EntityDefinitionError, match="not registered"):
            describe(Loose)

    def test_missing_key(self):
        @table("NoKeys")
        @dataclass
        class NoKey:
            Name: str = ""

        with pytest.raises(EntityDefinitionError, match="exactly one key"):
            describe(NoKey)

    def test_two_keys(self):
        @table("TwoKeys")
        @dataclass
        class TwoKeys:
            A: int = column(key=True, default=0)
            B: int = column(key=True, default=0)

        with pytest.raises(EntityDefinitionError, match="found 2"):
            describe(TwoKeys)

    def test_nullable_key(self):
        @table("NullKeys")
        @dataclass
        class NullKey:
            Id: int | None = column(key=True, default=None)

        with pytest.raises(EntityDefinitionError, match="cannot be nullable"):
            describe(NullKey)

    def test_missing_default(self):
        @table("NoDefaults")
        @dataclass
        class NoDefault:
            Id: int

        with pytest.raises(EntityDefinitionError, match="needs a default") as exc:
            describe(NoDefault)
        assert exc.value.context.field == "Id"

    def test_unsupported_type(self):
        @table("Dicts")
        @dataclass
        class WithDict:
            Id: int = column(key=True, default=0)
            Data: dict | None = None

        with pytest.raises(UnsupportedTypeError) as exc:
            describe(WithDict)
        assert exc.value.context.table == "Dicts"
        assert exc.value.context.field == "Data"

    def test_collection_of_non_text(self):
        @table("IntLists")
        @dataclass
        class IntList:
            Id: int = column(key=True, default=0)
            Values: list[int] | None = None

        with pytest.raises(UnsupportedTypeError, match="only sequences of str"):
            describe(IntList)

    def test_width_override_on_text(self):
        @table("BadWidths")
        @dataclass
        class BadWidth:
            Id: int = column(key=True, default=0)
            Name: str = column(kind=FieldType.INT32, default="")

        with pytest.raises(EntityDefinitionError, match="integer width"):
            describe(BadWidth)

    def test_unknown_owner(self):
        @table("Orphans", owner="OwnerId")
        @dataclass
        class Orphan:
            Id: int = column(key=True, default=0)

        with pytest.raises(EntityDefinitionError, match="Ownership column"):
            describe(Orphan)

    def test_unknown_sortable(self):
        @table("Unsortables", sortable=("Missing",))
        @dataclass
        class Unsortable:
            Id: int = column(key=True, default=0)

        with pytest.raises(EntityDefinitionError, match="Missing"):
            describe(Unsortable)
