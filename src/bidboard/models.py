"""Record types persisted by the engine and their snapshot encoding."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterator, Mapping, Optional, Tuple

ISO_FORMAT = "%Y-%m-%dT%H:%M:%S%z"

PRICING = "pricing"
FLOORPLAN = "floorplan"
BID = "bid"
CATEGORIES: Tuple[str, ...] = (PRICING, FLOORPLAN, BID)


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.astimezone()
    return value.strftime(ISO_FORMAT)


def parse_timestamp(value: str) -> datetime:
    try:
        return datetime.strptime(value, ISO_FORMAT)
    except ValueError:
        return datetime.fromisoformat(value)


def _optional_text(value: object) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class PriceItem:
    """One priced row of the company price sheet."""

    id: str
    name: str
    price: float
    category: str = ""

    def to_record(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "price": self.price,
            "category": self.category,
        }

    def to_payload(self) -> dict:
        """Body sent to the remote catalog; the server owns the id."""
        return {"name": self.name, "price": self.price, "category": self.category}

    @classmethod
    def from_record(cls, raw: Mapping[str, object]) -> "PriceItem":
        item_id = raw.get("id", raw.get("_id"))
        return cls(
            id=str(item_id),
            name=str(raw.get("name", "")),
            price=float(raw.get("price", 0.0)),  # type: ignore[arg-type]
            category=str(raw.get("category") or ""),
        )


@dataclass(frozen=True)
class ProjectArtifact:
    """Metadata for an uploaded file. No binary payload is tracked."""

    id: str
    file_name: str
    file_size: int
    file_type: str
    upload_date: datetime
    category: str
    project_key: Optional[str] = None
    project_location: Optional[str] = None

    def to_record(self) -> dict:
        data = {
            "id": self.id,
            "file_name": self.file_name,
            "file_size": self.file_size,
            "file_type": self.file_type,
            "upload_date": format_timestamp(self.upload_date),
            "category": self.category,
        }
        if self.project_key:
            data["project_key"] = self.project_key
        if self.project_location:
            data["project_location"] = self.project_location
        return data

    @classmethod
    def from_record(cls, raw: Mapping[str, object]) -> "ProjectArtifact":
        return cls(
            id=str(raw["id"]),
            file_name=str(raw["file_name"]),
            file_size=int(raw.get("file_size", 0)),  # type: ignore[arg-type]
            file_type=str(raw.get("file_type") or "unknown"),
            upload_date=parse_timestamp(str(raw["upload_date"])),
            category=str(raw["category"]),
            project_key=_optional_text(raw.get("project_key")),
            project_location=_optional_text(raw.get("project_location")),
        )


@dataclass(frozen=True)
class ProjectBundle:
    """Per-project grouping of at most one artifact per category."""

    project_key: str
    location: Optional[str] = None
    pricing: Optional[ProjectArtifact] = None
    floorplan: Optional[ProjectArtifact] = None
    bid: Optional[ProjectArtifact] = None

    @property
    def title(self) -> str:
        return self.project_key

    def slot(self, category: str) -> Optional[ProjectArtifact]:
        if category not in CATEGORIES:
            raise KeyError(category)
        return getattr(self, category)

    def artifacts(self) -> Iterator[ProjectArtifact]:
        for category in CATEGORIES:
            artifact = getattr(self, category)
            if artifact is not None:
                yield artifact


@dataclass(frozen=True)
class LineItem:
    description: str
    quantity: int
    unit_price: float
    total: float

    def to_record(self) -> dict:
        return {
            "description": self.description,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "total": self.total,
        }

    @classmethod
    def from_record(cls, raw: Mapping[str, object]) -> "LineItem":
        return cls(
            description=str(raw["description"]),
            quantity=int(raw.get("quantity", 1)),  # type: ignore[arg-type]
            unit_price=float(raw["unit_price"]),  # type: ignore[arg-type]
            total=float(raw["total"]),  # type: ignore[arg-type]
        )


@dataclass(frozen=True)
class BidEstimate:
    """Immutable result of one estimate generation call."""

    id: str
    project_id: str
    project_type: str
    base_amount: float
    bid_estimate: float
    line_items: Tuple[LineItem, ...]
    total_labor: float
    total_materials: float
    total_equipment: float
    confidence: int
    notes: Tuple[str, ...]
    file_name: str
    created_at: datetime
    project_key: Optional[str] = None
    document_types: Tuple[str, ...] = field(
        default=("Floor Plan Analysis", "Historical Pricing Data")
    )

    def to_record(self) -> dict:
        data = {
            "id": self.id,
            "project_id": self.project_id,
            "project_type": self.project_type,
            "base_amount": self.base_amount,
            "bid_estimate": self.bid_estimate,
            "line_items": [item.to_record() for item in self.line_items],
            "total_labor": self.total_labor,
            "total_materials": self.total_materials,
            "total_equipment": self.total_equipment,
            "confidence": self.confidence,
            "notes": list(self.notes),
            "file_name": self.file_name,
            "created_at": format_timestamp(self.created_at),
            "document_types": list(self.document_types),
        }
        if self.project_key:
            data["project_key"] = self.project_key
        return data

    @classmethod
    def from_record(cls, raw: Mapping[str, object]) -> "BidEstimate":
        return cls(
            id=str(raw["id"]),
            project_id=str(raw["project_id"]),
            project_type=str(raw.get("project_type", "unspecified")),
            base_amount=float(raw.get("base_amount", 0.0)),  # type: ignore[arg-type]
            bid_estimate=float(raw["bid_estimate"]),  # type: ignore[arg-type]
            line_items=tuple(LineItem.from_record(item) for item in raw.get("line_items", [])),  # type: ignore[union-attr]
            total_labor=float(raw.get("total_labor", 0.0)),  # type: ignore[arg-type]
            total_materials=float(raw.get("total_materials", 0.0)),  # type: ignore[arg-type]
            total_equipment=float(raw.get("total_equipment", 0.0)),  # type: ignore[arg-type]
            confidence=int(raw.get("confidence", 0)),  # type: ignore[arg-type]
            notes=tuple(str(note) for note in raw.get("notes", [])),  # type: ignore[union-attr]
            file_name=str(raw.get("file_name", "")),
            created_at=parse_timestamp(str(raw["created_at"])),
            project_key=_optional_text(raw.get("project_key")),
            document_types=tuple(str(doc) for doc in raw.get("document_types", [])),  # type: ignore[union-attr]
        )


__all__ = [
    "ISO_FORMAT",
    "PRICING",
    "FLOORPLAN",
    "BID",
    "CATEGORIES",
    "PriceItem",
    "ProjectArtifact",
    "ProjectBundle",
    "LineItem",
    "BidEstimate",
    "format_timestamp",
    "parse_timestamp",
]
