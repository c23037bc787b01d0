"""Tests for the inventory storage provider."""

from __future__ import annotations

from decimal import Decimal

import pytest

from binstore.core.errors import ConfigError, InitializationError
from binstore.core.paging import PaginatedRequest, SortDirection
from binstore.core.predicate import F
from binstore.core.protocols import UserContext
from binstore.core.settings import StorageSettings
from binstore.models import (
    DEFAULT_PART_TYPES,
    MountingType,
    OAuthCredential,
    Part,
    PartType,
    Project,
    StoredFile,
    StoredFileKind,
)
from binstore.provider import InventoryStorageProvider


class TestConstruction:
    def test_creates_every_table(self, provider: InventoryStorageProvider) -> None:
        assert provider.schema_result.tables_created == [
            "OAuthCredentials",
            "PartTypes",
            "Projects",
            "Parts",
            "StoredFiles",
        ]
        assert provider.dialect.name == "sqlite"

    def test_seeds_default_part_types(self, provider: InventoryStorageProvider) -> None:
        types = provider.part_types.list()
        assert len(types) == len(DEFAULT_PART_TYPES)
        by_name = {t.Name: t for t in types}
        assert by_name["Resistor"].ParentPartTypeId is None
        assert by_name["Potentiometer"].ParentPartTypeId == by_name["Resistor"].PartTypeId
        assert all(t.UserId is None for t in types)

    def test_reopen_does_not_reseed(self, db_url: str) -> None:
        with InventoryStorageProvider(db_url):
            pass
        with InventoryStorageProvider(db_url) as again:
            assert not again.schema_result.changed
            assert again.part_types.count() == len(DEFAULT_PART_TYPES)

    def test_seeding_can_be_disabled(self, db_url: str) -> None:
        settings = StorageSettings(connection_string=db_url, seed_defaults=False)
        with InventoryStorageProvider(settings) as store:
            assert store.part_types.count() == 0

    def test_bad_connection_string(self) -> None:
        with pytest.raises(ConfigError):
            InventoryStorageProvider("definitely not a url")

    def test_unreachable_database(self, tmp_path) -> None:
        url = f"sqlite:///{tmp_path / 'missing' / 'dir' / 'binner.db'}"
        with pytest.raises(InitializationError):
            InventoryStorageProvider(url)


class TestPartTypes:
    def test_global_types_are_visible_to_every_owner(self, provider: InventoryStorageProvider) -> None:
        provider.part_types.add(PartType(Name="Mine"), UserContext(1))
        provider.part_types.add(PartType(Name="Theirs"), UserContext(2))
        names = {t.Name for t in provider.get_part_types(UserContext(1))}
        assert "Mine" in names
        assert "Resistor" in names
        assert "Theirs" not in names
        assert len(provider.get_part_types()) == len(DEFAULT_PART_TYPES) + 2

    def test_get_or_create_part_type(self, provider: InventoryStorageProvider) -> None:
        ctx = UserContext(3)
        created = provider.get_or_create_part_type(PartType(Name="Fuse"), ctx)
        again = provider.get_or_create_part_type(PartType(Name="Fuse"), ctx)
        assert created.PartTypeId == again.PartTypeId
        assert created.UserId == 3
        assert provider.part_types.count(ctx, F("Name") == "Fuse") == 1


class TestParts:
    def test_round_trip(self, provider: InventoryStorageProvider) -> None:
        ctx = UserContext(1)
        resistor = provider.part_types.get_by("Name", "Resistor")
        part = provider.parts.add(
            Part(
                PartNumber="RC0805FR-0710KL",
                PartTypeId=resistor.PartTypeId,
                Quantity=250,
                Cost=Decimal("0.012"),
                Keywords=["resistor", "0805", "10k"],
                MountingTypeId=MountingType.SURFACE_MOUNT,
                BinNumber="A1",
            ),
            ctx,
        )
        loaded = provider.get_part_by_number("RC0805FR-0710KL", ctx)
        assert loaded.PartId == part.PartId
        assert loaded.Keywords == ["resistor", "0805", "10k"]
        assert loaded.Cost == Decimal("0.012")
        assert loaded.MountingTypeId is MountingType.SURFACE_MOUNT
        assert provider.get_part_by_number("RC0805FR-0710KL", UserContext(2)) is None

    def test_page_by_bin(self, provider: InventoryStorageProvider) -> None:
        ctx = UserContext(1)
        for i in range(5):
            provider.parts.add(
                Part(PartNumber=f"P{i}", BinNumber="A1" if i % 2 else "B2", Quantity=i), ctx
            )
        page = provider.parts.page(
            PaginatedRequest(
                by="BinNumber", value="A1", order_by="Quantity", direction=SortDirection.DESCENDING
            ),
            ctx,
        )
        assert page.total_items == 2
        assert [p.PartNumber for p in page.items] == ["P3", "P1"]


class TestProjectsAndFiles:
    def test_project_by_name(self, provider: InventoryStorageProvider) -> None:
        provider.projects.add(Project(Name="Synth", Color=0xFF8800), UserContext(1))
        project = provider.get_project_by_name("Synth", UserContext(1))
        assert project.Color == 0xFF8800
        assert provider.get_project_by_name("Synth", UserContext(2)) is None

    def test_stored_files_by_part_and_kind(self, provider: InventoryStorageProvider) -> None:
        ctx = UserContext(1)
        part = provider.parts.add(Part(PartNumber="LM358"), ctx)
        provider.stored_files.add(
            StoredFile(FileName="a.png", PartId=part.PartId, StoredFileType=StoredFileKind.IMAGE), ctx
        )
        provider.stored_files.add(
            StoredFile(FileName="a.pdf", PartId=part.PartId, StoredFileType=StoredFileKind.DATASHEET),
            ctx,
        )
        assert len(provider.get_stored_files(part.PartId, ctx=ctx)) == 2
        images = provider.get_stored_files(part.PartId, StoredFileKind.IMAGE, ctx)
        assert [f.FileName for f in images] == ["a.png"]
        assert provider.get_stored_file_by_name("a.pdf", ctx).StoredFileType is StoredFileKind.DATASHEET


class TestOAuthCredentials:
    def test_save_inserts_then_updates(self, provider: InventoryStorageProvider) -> None:
        ctx = UserContext(1)
        provider.save_oauth_credential(OAuthCredential(Provider="DigiKey", AccessToken="one"), ctx)
        provider.save_oauth_credential(OAuthCredential(Provider="DigiKey", AccessToken="two"), ctx)
        stored = provider.get_oauth_credential("DigiKey", ctx)
        assert stored.AccessToken == "two"
        assert stored.UserId == 1
        assert provider.oauth_credentials.count() == 1

    def test_each_owner_keeps_its_own_row(self, provider: InventoryStorageProvider) -> None:
        provider.save_oauth_credential(OAuthCredential(Provider="DigiKey", AccessToken="one"), UserContext(1))
        provider.save_oauth_credential(OAuthCredential(Provider="DigiKey", AccessToken="two"), UserContext(2))
        provider.save_oauth_credential(
            OAuthCredential(Provider="DigiKey", AccessToken="three"), UserContext(1)
        )
        assert provider.get_oauth_credential("DigiKey", UserContext(1)).AccessToken == "three"
        assert provider.get_oauth_credential("DigiKey", UserContext(2)).AccessToken == "two"
        assert provider.oauth_credentials.count() == 2

    def test_remove_is_scoped_to_owner(self, provider: InventoryStorageProvider) -> None:
        provider.save_oauth_credential(OAuthCredential(Provider="Mouser"), UserContext(1))
        provider.save_oauth_credential(OAuthCredential(Provider="Mouser"), UserContext(2))
        assert provider.remove_oauth_credential("Mouser", UserContext(2)) is True
        assert provider.get_oauth_credential("Mouser", UserContext(1)) is not None
        assert provider.get_oauth_credential("Mouser", UserContext(2)) is None

    def test_remove(self, provider: InventoryStorageProvider) -> None:
        provider.save_oauth_credential(OAuthCredential(Provider="Mouser"))
        assert provider.remove_oauth_credential("Mouser") is True
        assert provider.remove_oauth_credential("Mouser") is False
        assert provider.get_oauth_credential("Mouser") is None


class TestFindParts:
    def _stock(self, provider: InventoryStorageProvider, ctx: UserContext) -> dict[str, Part]:
        parts = [
            Part(PartNumber="LM358", Description="Dual op-amp"),
            Part(PartNumber="LM358N", Description="Dual op-amp, DIP"),
            Part(PartNumber="XLM358", BinNumber="C3"),
            Part(PartNumber="NE555", Keywords=["timer", "lm358-alt"]),
            Part(PartNumber="BC547"),
        ]
        return {p.PartNumber: provider.parts.add(p, ctx) for p in parts}

    def test_ranks_exact_then_prefix_then_substring(self, provider: InventoryStorageProvider) -> None:
        ctx = UserContext(1)
        stocked = self._stock(provider, ctx)
        results = provider.find_parts("LM358", ctx)
        assert [(r.rank, r.part.PartNumber) for r in results] == [
            (10, "LM358"),
            (100, "LM358N"),
            (200, "XLM358"),
            (200, "NE555"),
        ]
        assert results[0].part == stocked["LM358"]

    def test_searches_bin_numbers(self, provider: InventoryStorageProvider) -> None:
        ctx = UserContext(1)
        self._stock(provider, ctx)
        assert [r.part.PartNumber for r in provider.find_parts("C3", ctx)] == ["XLM358"]

    def test_scoped_to_owner(self, provider: InventoryStorageProvider) -> None:
        self._stock(provider, UserContext(1))
        assert provider.find_parts("LM358", UserContext(2)) == []

    def test_like_wildcards_are_literal(self, provider: InventoryStorageProvider) -> None:
        self._stock(provider, UserContext(1))
        assert provider.find_parts("LM_58", UserContext(1)) == []


class TestGetDatabase:
    def test_snapshot_of_owner_data(self, provider: InventoryStorageProvider) -> None:
        ctx = UserContext(1)
        first = provider.parts.add(Part(PartNumber="A"), ctx)
        last = provider.parts.add(Part(PartNumber="B"), ctx)
        provider.parts.add(Part(PartNumber="C"), UserContext(2))
        provider.projects.add(Project(Name="Synth"), ctx)
        provider.save_oauth_credential(OAuthCredential(Provider="DigiKey"), ctx)

        snapshot = provider.get_database(ctx)
        assert snapshot.count == 2
        assert snapshot.first_part_id == first.PartId
        assert snapshot.last_part_id == last.PartId
        assert [p.Name for p in snapshot.projects] == ["Synth"]
        assert [c.Provider for c in snapshot.oauth_credentials] == ["DigiKey"]
        assert len(snapshot.part_types) == len(DEFAULT_PART_TYPES)

    def test_empty_database(self, provider: InventoryStorageProvider) -> None:
        snapshot = provider.get_database(UserContext(9))
        assert snapshot.count == 0
        assert snapshot.first_part_id is None
        assert snapshot.last_part_id is None
