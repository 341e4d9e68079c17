"""
Deterministic bid estimation from sparse project inputs.

The cost breakdown is a fixed set of ratios applied to a base amount. The
base is the client's budget scaled by a project-type factor; when no budget
is given a seed amount is drawn from the injected random source, as is the
confidence score, so tests can pin every output exactly.
"""

from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, List, Optional, Protocol, Sequence, Tuple

import numpy as np

from .cache import LocalCache
from .errors import NotFoundError, StorageError, ValidationError
from .events import CREATED, DELETED, EventBus
from .models import BID, BidEstimate, LineItem, ProjectArtifact, ProjectBundle

LOGGER = logging.getLogger(__name__)

COMMERCIAL = "commercial"
RESIDENTIAL = "residential"
INDUSTRIAL = "industrial"
INFRASTRUCTURE = "infrastructure"
UNSPECIFIED = "unspecified"

TYPE_FACTORS = {
    COMMERCIAL: 1.2,
    RESIDENTIAL: 0.8,
    INDUSTRIAL: 1.4,
    INFRASTRUCTURE: 1.3,
    UNSPECIFIED: 1.0,
}

SEED_BASE = 75000
SEED_SPAN = 50000
CONFIDENCE_FLOOR = 85
CONFIDENCE_SPAN = 10
BID_FILE_SIZE_FLOOR = 500000
BID_FILE_SIZE_SPAN = 1000000

PROJECT_MANAGEMENT_SHARE = Decimal("0.7")
INSURANCE_SHARE = Decimal("0.3")

BOILERPLATE_NOTES: Tuple[str, ...] = (
    "Bid generated from project floor plans and historical pricing ratios",
    "All work to be completed according to local building codes",
    "Excludes hazardous material handling",
    "Based on standard 8-hour work days",
)
PRICE_VOLATILITY_NOTE = "Prices subject to change based on material availability"

_CENTS = Decimal("0.01")


class RandomSource(Protocol):
    def random(self) -> float:
        """Return a float in ``[0, 1)``."""
        ...


class NumpyRandomSource:
    """Production random source backed by :func:`numpy.random.default_rng`."""

    def __init__(self, seed: Optional[int] = None) -> None:
        self._rng = np.random.default_rng(seed)

    def random(self) -> float:
        return float(self._rng.random())


class SequenceRandomSource:
    """Replays fixed values in order, cycling when exhausted."""

    def __init__(self, values: Sequence[float]) -> None:
        if not values:
            raise ValueError("SequenceRandomSource needs at least one value")
        for value in values:
            if not 0.0 <= value < 1.0:
                raise ValueError(f"Random values must lie in [0, 1): {value}")
        self._values = list(values)
        self._index = 0

    def random(self) -> float:
        value = self._values[self._index % len(self._values)]
        self._index += 1
        return value


@dataclass(frozen=True)
class EstimateRequest:
    name: str
    project_type: str = UNSPECIFIED
    budget: Optional[float] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class CostRatios:
    labor: float
    materials: float
    equipment: float = 0.2
    overhead: float = 0.1
    profit: float = 0.1

    @property
    def total(self) -> float:
        """Sum of all ratios. Not normalized, so it can exceed 1."""
        return self.labor + self.materials + self.equipment + self.overhead + self.profit


def normalize_project_type(value: Optional[str]) -> str:
    key = (value or "").strip().lower()
    return key if key in TYPE_FACTORS else UNSPECIFIED


def cost_ratios(project_type: str) -> CostRatios:
    project_type = normalize_project_type(project_type)
    return CostRatios(
        labor=0.5 if project_type == INDUSTRIAL else 0.45,
        materials=0.3 if project_type == RESIDENTIAL else 0.35,
    )


def _money(value: Decimal) -> Decimal:
    return value.quantize(_CENTS, rounding=ROUND_HALF_UP)


def _decimal(value: float) -> Decimal:
    return Decimal(str(value))


def _split_project_name(name: str) -> Tuple[Optional[str], Optional[str]]:
    head, sep, tail = name.partition(" - ")
    key = head.strip() or None
    location = tail.strip() if sep else ""
    return key, (location or None)


class BidEstimator:
    """Builds a :class:`BidEstimate` and persists it with its synthetic bid artifact."""

    def __init__(
        self,
        estimates: LocalCache,
        artifacts: LocalCache,
        *,
        random_source: Optional[RandomSource] = None,
        events: Optional[EventBus] = None,
        clock: Callable[[], datetime] | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self.estimates = estimates
        self.artifacts = artifacts
        self.random_source = random_source or NumpyRandomSource()
        self.events = events or EventBus()
        self._clock = clock or (lambda: datetime.now().astimezone())
        self._id_factory = id_factory or (lambda: uuid.uuid4().hex)

    def base_amount(self, request: EstimateRequest) -> Decimal:
        budget = request.budget
        value = 0.0
        if budget is not None:
            try:
                value = float(budget)
            except (TypeError, ValueError) as exc:
                raise ValidationError(f"Budget must be numeric: {budget!r}") from exc
            if not math.isfinite(value) or value < 0:
                raise ValidationError("Budget must be a finite, non-negative amount")
        # A zero budget counts as no budget.
        if value == 0:
            amount = _decimal(SEED_BASE + self.random_source.random() * SEED_SPAN)
        else:
            amount = _decimal(value)
        factor = TYPE_FACTORS[normalize_project_type(request.project_type)]
        return amount * _decimal(factor)

    def line_items(self, base: Decimal, ratios: CostRatios) -> List[LineItem]:
        labor = _money(base * _decimal(ratios.labor))
        materials = _money(base * _decimal(ratios.materials))
        equipment = _money(base * _decimal(ratios.equipment))
        overhead = base * _decimal(ratios.overhead)
        profit = _money(base * _decimal(ratios.profit))
        rows = [
            ("Labor", labor),
            ("Materials", materials),
            ("Equipment Rental", equipment),
            ("Project Management", _money(overhead * PROJECT_MANAGEMENT_SHARE)),
            ("Insurance & Permits", _money(overhead * INSURANCE_SHARE)),
            ("Profit", profit),
        ]
        return [
            LineItem(description=desc, quantity=1, unit_price=float(total), total=float(total))
            for desc, total in rows
        ]

    def notes(self, request: EstimateRequest, project_type: str) -> List[str]:
        label = project_type if project_type != UNSPECIFIED else "standard"
        notes = list(BOILERPLATE_NOTES)
        notes.append(f"Optimized for {label} project requirements")
        notes.append(PRICE_VOLATILITY_NOTE)
        client_notes = (request.notes or "").strip()
        if client_notes:
            notes.append(f"Client notes: {client_notes}")
        return notes

    def compute(
        self,
        request: EstimateRequest,
        *,
        bundle: Optional[ProjectBundle] = None,
        project_id: Optional[str] = None,
    ) -> Tuple[BidEstimate, ProjectArtifact]:
        """Build the estimate and its bid artifact without touching storage."""

        project_type = normalize_project_type(request.project_type)
        base = self.base_amount(request)
        ratios = cost_ratios(project_type)
        items = self.line_items(base, ratios)
        total = sum((_decimal(item.total) for item in items), Decimal("0"))
        confidence = CONFIDENCE_FLOOR + math.floor(self.random_source.random() * CONFIDENCE_SPAN)

        if bundle is not None:
            project_key, location = bundle.project_key, bundle.location
        else:
            project_key, location = _split_project_name(request.name or "")
        if project_id is None:
            if bundle is not None and bundle.floorplan is not None:
                project_id = bundle.floorplan.id
            else:
                project_id = project_key or self._id_factory()

        created_at = self._clock()
        label = "_".join((project_key or "Project").split())
        file_name = f"Bid_{label}_{created_at.strftime('%Y-%m-%d')}.pdf"
        file_size = BID_FILE_SIZE_FLOOR + math.floor(self.random_source.random() * BID_FILE_SIZE_SPAN)

        estimate = BidEstimate(
            id=self._id_factory(),
            project_id=project_id,
            project_type=project_type,
            base_amount=float(_money(base)),
            bid_estimate=float(_money(total)),
            line_items=tuple(items),
            total_labor=items[0].total,
            total_materials=items[1].total,
            total_equipment=items[2].total,
            confidence=confidence,
            notes=tuple(self.notes(request, project_type)),
            file_name=file_name,
            created_at=created_at,
            project_key=project_key,
        )
        artifact = ProjectArtifact(
            id=self._id_factory(),
            file_name=file_name,
            file_size=file_size,
            file_type="pdf",
            upload_date=created_at,
            category=BID,
            project_key=project_key,
            project_location=location,
        )
        return estimate, artifact

    def generate(
        self,
        request: EstimateRequest,
        *,
        bundle: Optional[ProjectBundle] = None,
        project_id: Optional[str] = None,
    ) -> BidEstimate:
        """Compute and persist an estimate; on any storage failure nothing is kept."""

        estimate, artifact = self.compute(request, bundle=bundle, project_id=project_id)
        self._persist(estimate, artifact)
        LOGGER.info(
            "Generated bid %s for %s: $%.2f (confidence %d%%)",
            estimate.id,
            estimate.project_id,
            estimate.bid_estimate,
            estimate.confidence,
        )
        self.events.emit(
            CREATED,
            table=self.estimates.table,
            id=estimate.id,
            project_id=estimate.project_id,
            bid_estimate=estimate.bid_estimate,
        )
        return estimate

    def _persist(self, estimate: BidEstimate, artifact: ProjectArtifact) -> None:
        previous_estimates = self.estimates.read()
        previous_artifacts = self.artifacts.read()
        self.estimates.write([estimate.to_record(), *previous_estimates])
        try:
            self.artifacts.write([artifact.to_record(), *previous_artifacts])
        except StorageError:
            LOGGER.error("Bid artifact write failed; rolling back estimate %s", estimate.id)
            try:
                self.estimates.write(previous_estimates)
            except StorageError as exc:
                LOGGER.error("Rollback of %s snapshot failed: %s", self.estimates.table, exc)
            raise


class BidLedger:
    """Read/delete access to saved estimates, newest first."""

    def __init__(self, cache: LocalCache, *, events: Optional[EventBus] = None) -> None:
        self.cache = cache
        self.events = events or EventBus()

    def list(self) -> List[BidEstimate]:
        return [BidEstimate.from_record(raw) for raw in self.cache.read()]

    def get(self, estimate_id: str) -> BidEstimate:
        for estimate in self.list():
            if estimate.id == estimate_id:
                return estimate
        raise NotFoundError(f"Estimate {estimate_id} not found")

    def for_project(self, project_id: str) -> List[BidEstimate]:
        return [estimate for estimate in self.list() if estimate.project_id == project_id]

    def delete(self, estimate_id: str) -> BidEstimate:
        records = self.cache.read()
        remaining = [raw for raw in records if raw.get("id") != estimate_id]
        if len(remaining) == len(records):
            raise NotFoundError(f"Estimate {estimate_id} not found")
        removed = next(raw for raw in records if raw.get("id") == estimate_id)
        self.cache.write(remaining)
        self.events.emit(DELETED, table=self.cache.table, id=estimate_id)
        return BidEstimate.from_record(removed)


__all__ = [
    "BidEstimator",
    "BidLedger",
    "EstimateRequest",
    "CostRatios",
    "RandomSource",
    "NumpyRandomSource",
    "SequenceRandomSource",
    "TYPE_FACTORS",
    "cost_ratios",
    "normalize_project_type",
]
