"""Group classified artifacts into project bundles and page through them."""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Dict, Generic, Iterable, List, Mapping, Optional, Sequence, Tuple, TypeVar

from .errors import ValidationError
from .models import BID, FLOORPLAN, PRICING, ProjectArtifact, ProjectBundle

T = TypeVar("T")

SORT_FIELDS = ("title", "location")


@dataclass(frozen=True)
class CategorizedFiles:
    pricing: List[ProjectArtifact]
    floorplan: List[ProjectArtifact]
    bid: List[ProjectArtifact]
    by_project: Dict[str, ProjectBundle]


@dataclass(frozen=True)
class Page(Generic[T]):
    items: Tuple[T, ...]
    page_index: int
    page_size: int
    total_items: int
    total_pages: int

    @property
    def first_item(self) -> int:
        """1-based position of the first item on the page, 0 when empty."""
        return self.page_index * self.page_size + 1 if self.items else 0

    @property
    def last_item(self) -> int:
        return self.page_index * self.page_size + len(self.items) if self.items else 0

    @property
    def has_next(self) -> bool:
        return self.page_index + 1 < self.total_pages


def organize_files_by_project(artifacts: Iterable[ProjectArtifact]) -> Dict[str, ProjectBundle]:
    """Build one bundle per project key in input order.

    Artifacts without a project key are skipped. Each category slot keeps the
    first artifact encountered; later ones of the same category stay in the
    flat list but never replace it.
    """

    projects: Dict[str, ProjectBundle] = {}
    for artifact in artifacts:
        key = artifact.project_key
        if not key:
            continue
        bundle = projects.get(key) or ProjectBundle(project_key=key)
        if bundle.location is None and artifact.project_location:
            bundle = replace(bundle, location=artifact.project_location)
        if bundle.slot(artifact.category) is None:
            bundle = replace(bundle, **{artifact.category: artifact})
        projects[key] = bundle
    return projects


def organize_categorized_files(artifacts: Iterable[ProjectArtifact]) -> CategorizedFiles:
    files = list(artifacts)
    return CategorizedFiles(
        pricing=[f for f in files if f.category == PRICING],
        floorplan=[f for f in files if f.category == FLOORPLAN],
        bid=[f for f in files if f.category == BID],
        by_project=organize_files_by_project(files),
    )


def _field(item: object, name: str) -> Optional[str]:
    if isinstance(item, Mapping):
        value = item.get(name)
    else:
        value = getattr(item, name, None)
    if value is None:
        return None
    return str(value)


def _sort_key(value: Optional[str]) -> Tuple[bool, str, str]:
    # Missing values sort last; casefold groups case variants, the raw text breaks ties.
    if value is None:
        return (True, "", "")
    return (False, value.casefold(), value)


def sort_items(items: Iterable[T], sort_by: str = "title") -> List[T]:
    if sort_by not in SORT_FIELDS:
        raise ValidationError(f"Unsupported sort field {sort_by!r}; expected one of {SORT_FIELDS}")
    return sorted(items, key=lambda item: _sort_key(_field(item, sort_by)))


def page(items: Sequence[T], page_size: int, page_index: int) -> Page[T]:
    """Return the zero-based ``page_index`` slice of ``items``."""

    if page_size < 1:
        raise ValidationError("page_size must be at least 1")
    if page_index < 0:
        raise ValidationError("page_index must not be negative")
    total = len(items)
    start = page_index * page_size
    return Page(
        items=tuple(items[start:start + page_size]),
        page_index=page_index,
        page_size=page_size,
        total_items=total,
        total_pages=math.ceil(total / page_size),
    )


def paginate_projects(
    bundles: Mapping[str, ProjectBundle] | Iterable[ProjectBundle],
    *,
    sort_by: str = "title",
    page_size: int = 6,
    page_index: int = 0,
) -> Page[ProjectBundle]:
    values = bundles.values() if isinstance(bundles, Mapping) else bundles
    return page(sort_items(values, sort_by), page_size, page_index)


__all__ = [
    "CategorizedFiles",
    "Page",
    "organize_files_by_project",
    "organize_categorized_files",
    "sort_items",
    "page",
    "paginate_projects",
]
