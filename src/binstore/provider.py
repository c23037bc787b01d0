"""
Inventory storage provider backed by a relational database.

Manifesto:
    Constructing the provider is the whole startup story: it reads one
    connection string, brings the schema up to date, seeds the default part
    types into a brand-new database, and then hands out one repository per
    entity.  If the schema cannot be synchronized, construction fails and no
    operation is ever accepted.

Architecture:
    ::

        InventoryStorageProvider(settings)
          │
          ├─ create_storage_engine(connection_string)
          ├─ dialect_for_url(connection_string)
          ├─ SchemaSynchronizer(ENTITIES).sync()      ─► InitializationError
          │     └─ on_table_created("PartTypes") → seed DEFAULT_PART_TYPES
          │
          └─ repositories
               oauth_credentials  EntityRepository[OAuthCredential]
               part_types         EntityRepository[PartType]
               projects           EntityRepository[Project]
               parts              EntityRepository[Part]
               stored_files       EntityRepository[StoredFile]

        find_parts(keywords, ctx)   ranked search: exact 10, prefix 100, substring 200
        get_database(ctx)           InventorySnapshot of everything the owner sees

Examples:
    >>> from binstore import InventoryStorageProvider, UserContext
    >>> with InventoryStorageProvider("sqlite:///binner.db") as store:
    ...     part = store.parts.add(Part(PartNumber="LM358"), UserContext(1))
    ...     store.parts.get(part.PartId, UserContext(1)).PartNumber
    'LM358'

Tags:
    provider, inventory, storage, binstore
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

from binstore.core.connection import ConnectionInfo, create_storage_engine
from binstore.core.dialect import dialect_for_url
from binstore.core.errors import BinstoreError, InitializationError
from binstore.core.executor import SqlExecutor
from binstore.core.logging import get_logger
from binstore.core.predicate import F, Predicate, any_of
from binstore.core.protocols import OwnershipContext, owner_id
from binstore.core.repository import EntityRepository
from binstore.core.schema import SchemaSynchronizer, SchemaSyncResult, TableDescriptor, describe
from binstore.core.settings import StorageSettings
from binstore.models import (
    DEFAULT_PART_TYPES,
    ENTITIES,
    OAuthCredential,
    Part,
    PartType,
    Project,
    StoredFile,
    StoredFileKind,
)

logger = get_logger(__name__)

# Columns searched by find_parts().
SEARCH_FIELDS = (
    "PartNumber",
    "DigiKeyPartNumber",
    "MouserPartNumber",
    "ManufacturerPartNumber",
    "Description",
    "Keywords",
    "Location",
    "BinNumber",
    "BinNumber2",
)

# Match tiers; a lower rank sorts first.
RANK_EXACT = 10
RANK_PREFIX = 100
RANK_SUBSTRING = 200


@dataclass(frozen=True, slots=True)
class PartSearchResult:
    rank: int
    part: Part


@dataclass
class InventorySnapshot:
    """Everything one owner can see, as returned by ``get_database``."""

    oauth_credentials: list[OAuthCredential] = field(default_factory=list)
    parts: list[Part] = field(default_factory=list)
    part_types: list[PartType] = field(default_factory=list)
    projects: list[Project] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.parts)

    @property
    def first_part_id(self) -> int | None:
        return min((p.PartId for p in self.parts), default=None)

    @property
    def last_part_id(self) -> int | None:
        return max((p.PartId for p in self.parts), default=None)


class InventoryStorageProvider:
    """Relational storage for parts, part types, projects, files and credentials.

    Parameters
    ----------
    settings
        A :class:`StorageSettings` or a bare connection string.
    """

    def __init__(self, settings: StorageSettings | str):
        if isinstance(settings, str):
            settings = StorageSettings(connection_string=settings)
        self.settings = settings
        self.connection = ConnectionInfo.parse(settings.connection_string)
        self.dialect = dialect_for_url(settings.connection_string)
        self.engine = create_storage_engine(
            self.connection.url,
            echo=settings.echo_sql,
            pool_pre_ping=settings.pool_pre_ping,
        )
        self.executor = SqlExecutor(self.engine, self.dialect)

        self.oauth_credentials: EntityRepository[OAuthCredential] = EntityRepository(
            self.executor, OAuthCredential
        )
        self.part_types: EntityRepository[PartType] = EntityRepository(self.executor, PartType)
        self.projects: EntityRepository[Project] = EntityRepository(self.executor, Project)
        self.parts: EntityRepository[Part] = EntityRepository(self.executor, Part)
        self.stored_files: EntityRepository[StoredFile] = EntityRepository(
            self.executor, StoredFile
        )

        self.schema_result = self._initialize()

    # -- lifecycle -----------------------------------------------------------

    def _initialize(self) -> SchemaSyncResult:
        synchronizer = SchemaSynchronizer(
            self.engine,
            self.dialect,
            [describe(entity) for entity in ENTITIES],
            on_table_created=self._on_table_created,
        )
        try:
            return synchronizer.sync()
        except InitializationError:
            self.engine.dispose()
            raise
        except BinstoreError as e:
            self.engine.dispose()
            raise InitializationError(f"Storage initialization failed: {e}", cause=e) from e

    def _on_table_created(self, table: TableDescriptor) -> None:
        if table.name == self.part_types.table.name and self.settings.seed_defaults:
            self.seed_default_part_types()

    def seed_default_part_types(self) -> int:
        """Insert the global (unowned) default part types; returns rows added."""
        ids: dict[str, int] = {}
        for name, parent in DEFAULT_PART_TYPES:
            created = self.part_types.add(
                PartType(Name=name, ParentPartTypeId=ids.get(parent) if parent else None)
            )
            ids[name] = created.PartTypeId
        logger.info("provider.seeded_part_types", count=len(ids))
        return len(ids)

    def close(self) -> None:
        self.engine.dispose()

    def __enter__(self) -> InventoryStorageProvider:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    # -- part types ----------------------------------------------------------

    def get_part_types(self, ctx: OwnershipContext | None = None) -> list[PartType]:
        """Part types owned by *ctx* plus the global (unowned) ones."""
        if owner_id(ctx) is None:
            return self.part_types.list()
        return self.part_types.find(
            (F("UserId") == owner_id(ctx)) | F("UserId").is_null()
        )

    def get_or_create_part_type(
        self, part_type: PartType, ctx: OwnershipContext | None = None
    ) -> PartType:
        return self.part_types.get_or_create(part_type, ("Name",), ctx)

    # -- lookups by natural key ----------------------------------------------

    def get_part_by_number(self, part_number: str, ctx: OwnershipContext | None = None) -> Part | None:
        return self.parts.get_by("PartNumber", part_number, ctx)

    def get_project_by_name(self, name: str, ctx: OwnershipContext | None = None) -> Project | None:
        return self.projects.get_by("Name", name, ctx)

    def get_stored_file_by_name(
        self, file_name: str, ctx: OwnershipContext | None = None
    ) -> StoredFile | None:
        return self.stored_files.get_by("FileName", file_name, ctx)

    def get_stored_files(
        self,
        part_id: int,
        file_type: StoredFileKind | None = None,
        ctx: OwnershipContext | None = None,
    ) -> list[StoredFile]:
        predicate = F("PartId") == part_id
        if file_type is not None:
            predicate = predicate & (F("StoredFileType") == file_type)
        return self.stored_files.find(predicate, ctx)

    # -- search and export ---------------------------------------------------

    def find_parts(
        self, keywords: str, ctx: OwnershipContext | None = None
    ) -> list[PartSearchResult]:
        """Ranked keyword search over the part's identifying text columns.

        A part ranks by its best match: an exact value beats a prefix, which
        beats a substring.  Results are ordered by rank, then by ``PartId``.
        LIKE matching follows the database collation, so it is
        case-insensitive on SQLite and SQL Server defaults.
        """
        tiers: list[tuple[int, Predicate]] = [
            (RANK_EXACT, any_of(*(F(name) == keywords for name in SEARCH_FIELDS))),
            (RANK_PREFIX, any_of(*(F(name).startswith(keywords) for name in SEARCH_FIELDS))),
            (RANK_SUBSTRING, any_of(*(F(name).contains(keywords) for name in SEARCH_FIELDS))),
        ]
        best: dict[int, PartSearchResult] = {}
        for rank, predicate in tiers:
            for part in self.parts.find(predicate, ctx):
                best.setdefault(part.PartId, PartSearchResult(rank, part))
        return sorted(best.values(), key=lambda r: (r.rank, r.part.PartId))

    def get_database(self, ctx: OwnershipContext | None = None) -> InventorySnapshot:
        """Snapshot of the credentials, parts, part types and projects *ctx* sees."""
        return InventorySnapshot(
            oauth_credentials=self.oauth_credentials.list(ctx),
            parts=self.parts.list(ctx),
            part_types=self.get_part_types(ctx),
            projects=self.projects.list(ctx),
        )

    # -- OAuth credential rows -----------------------------------------------

    def get_oauth_credential(
        self, provider: str, ctx: OwnershipContext | None = None
    ) -> OAuthCredential | None:
        return self.oauth_credentials.get_by("Provider", provider, ctx)

    def save_oauth_credential(
        self, credential: OAuthCredential, ctx: OwnershipContext | None = None
    ) -> OAuthCredential:
        """Store *credential* as the owner's row for its provider.

        The row is created by one conditional insert when the owner has none,
        then overwritten by key; each owner keeps its own row per provider.
        """
        row = self.oauth_credentials.get_or_create(credential, ("Provider",), ctx)
        stored = replace(
            credential, OAuthCredentialId=row.OAuthCredentialId, UserId=row.UserId
        )
        return self.oauth_credentials.update(stored, ctx)

    def remove_oauth_credential(self, provider: str, ctx: OwnershipContext | None = None) -> bool:
        return self.oauth_credentials.delete_where(F("Provider") == provider, ctx) > 0


__all__ = ["InventoryStorageProvider", "InventorySnapshot", "PartSearchResult"]
