"""Stored inventory entities.

Each class is a plain dataclass registered with :func:`~binstore.core.schema.table`.
Field names are the column names; annotations drive the column types.
Business rules (stock levels, pricing, file contents, token refresh) live
outside the storage engine.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from binstore.core.schema import FieldType, column, table


def utcnow() -> datetime:
    """Naive UTC timestamp, matching what the databases store."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class MountingType(enum.IntEnum):
    NONE = 0
    THROUGH_HOLE = 1
    SURFACE_MOUNT = 2


class StoredFileKind(enum.IntEnum):
    OTHER = 0
    IMAGE = 1
    DATASHEET = 2
    PINOUT = 3
    REFERENCE_DESIGN = 4
    SCHEMATIC = 5


@table("OAuthCredentials", owner="UserId")
@dataclass
class OAuthCredential:
    OAuthCredentialId: int = column(key=True, default=0)
    Provider: str = column(max_length=255, default="")
    AccessToken: str | None = None
    RefreshToken: str | None = None
    DateCreatedUtc: datetime = column(default_factory=utcnow)
    DateExpiresUtc: datetime = column(default_factory=utcnow)
    UserId: int | None = None


@table("PartTypes", owner="UserId", sortable=("Name", "ParentPartTypeId", "DateCreatedUtc"))
@dataclass
class PartType:
    PartTypeId: int = column(key=True, default=0)
    ParentPartTypeId: int | None = None
    Name: str = column(max_length=255, default="")
    UserId: int | None = None
    DateCreatedUtc: datetime = column(default_factory=utcnow)


@table(
    "Projects",
    owner="UserId",
    sortable=("Name", "Description", "Location", "Color", "DateCreatedUtc"),
)
@dataclass
class Project:
    ProjectId: int = column(key=True, default=0)
    Name: str = column(max_length=255, default="")
    Description: str | None = None
    Location: str | None = None
    Color: int = column(kind=FieldType.INT32, default=0)
    UserId: int | None = None
    DateCreatedUtc: datetime = column(default_factory=utcnow)


@table(
    "Parts",
    owner="UserId",
    sortable=(
        "PartNumber",
        "DigiKeyPartNumber",
        "MouserPartNumber",
        "Cost",
        "Quantity",
        "LowStockThreshold",
        "PartTypeId",
        "ProjectId",
        "Location",
        "BinNumber",
        "BinNumber2",
        "Manufacturer",
        "ManufacturerPartNumber",
        "DateCreatedUtc",
    ),
)
@dataclass
class Part:
    PartId: int = column(key=True, default=0)
    Quantity: int = 0
    LowStockThreshold: int = column(kind=FieldType.INT32, default=0)
    PartNumber: str | None = column(max_length=255, default=None)
    PackageType: str | None = None
    MountingTypeId: MountingType = MountingType.NONE
    DigiKeyPartNumber: str | None = column(max_length=255, default=None)
    MouserPartNumber: str | None = column(max_length=255, default=None)
    Description: str | None = None
    PartTypeId: int = 0
    ProjectId: int | None = None
    Keywords: list[str] | None = None
    DatasheetUrl: str | None = None
    Location: str | None = None
    BinNumber: str | None = None
    BinNumber2: str | None = None
    UserId: int | None = None
    Cost: Decimal = column(default=Decimal(0))
    Manufacturer: str | None = None
    ManufacturerPartNumber: str | None = None
    LowestCostSupplier: str | None = None
    LowestCostSupplierUrl: str | None = None
    ProductUrl: str | None = None
    ImageUrl: str | None = None
    DateCreatedUtc: datetime = column(default_factory=utcnow)


@table("StoredFiles", owner="UserId")
@dataclass
class StoredFile:
    """Metadata of an uploaded file; the content lives elsewhere."""

    StoredFileId: int = column(key=True, default=0)
    FileName: str = column(max_length=255, default="")
    OriginalFileName: str | None = column(max_length=255, default=None)
    StoredFileType: StoredFileKind = StoredFileKind.OTHER
    PartId: int = 0
    FileLength: int = column(kind=FieldType.INT32, default=0)
    Crc32: int = 0
    UserId: int | None = None
    DateCreatedUtc: datetime = column(default_factory=utcnow)


# Tables in creation order.
ENTITIES: tuple[type, ...] = (OAuthCredential, PartType, Project, Part, StoredFile)

# (name, parent name) of the part types seeded into a new database.
DEFAULT_PART_TYPES: tuple[tuple[str, str | None], ...] = (
    ("Resistor", None),
    ("Capacitor", None),
    ("Inductor", None),
    ("Diode", None),
    ("LED", None),
    ("Transistor", None),
    ("Relay", None),
    ("Connector", None),
    ("Switch", None),
    ("Crystal", None),
    ("IC", None),
    ("Sensor", None),
    ("Module", None),
    ("Cable", None),
    ("Other", None),
    ("Potentiometer", "Resistor"),
    ("Electrolytic", "Capacitor"),
    ("Ceramic", "Capacitor"),
    ("Zener", "Diode"),
    ("BJT", "Transistor"),
    ("MOSFET", "Transistor"),
    ("Microcontroller", "IC"),
    ("OpAmp", "IC"),
)

__all__ = [
    "utcnow",
    "MountingType",
    "StoredFileKind",
    "OAuthCredential",
    "PartType",
    "Project",
    "Part",
    "StoredFile",
    "ENTITIES",
    "DEFAULT_PART_TYPES",
]
