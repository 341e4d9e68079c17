"""Artifact library: register uploaded file metadata, delete, and group."""
from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Callable, Dict, List, Optional

from .aggregator import CategorizedFiles, organize_categorized_files, organize_files_by_project
from .cache import LocalCache
from .classifier import classify, file_type_for
from .errors import NotFoundError, ValidationError
from .events import CREATED, DELETED, EventBus
from .models import ProjectArtifact, ProjectBundle

LOGGER = logging.getLogger(__name__)


class ArtifactLibrary:
    """Artifacts are immutable once registered; the snapshot keeps newest first."""

    def __init__(
        self,
        cache: LocalCache,
        *,
        events: Optional[EventBus] = None,
        clock: Callable[[], datetime] | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self.cache = cache
        self.events = events or EventBus()
        self._clock = clock or (lambda: datetime.now().astimezone())
        self._id_factory = id_factory or (lambda: uuid.uuid4().hex)

    def list(self) -> List[ProjectArtifact]:
        return [ProjectArtifact.from_record(raw) for raw in self.cache.read()]

    def get(self, artifact_id: str) -> ProjectArtifact:
        for artifact in self.list():
            if artifact.id == artifact_id:
                return artifact
        raise NotFoundError(f"Artifact {artifact_id} not found")

    def register_upload(
        self,
        file_name: str,
        file_size: int,
        file_type: Optional[str] = None,
    ) -> ProjectArtifact:
        """Classify an upload from its metadata and store it ahead of older uploads."""

        name = (file_name or "").strip()
        if not name:
            raise ValidationError("File name is required")
        if file_size < 0:
            raise ValidationError("File size must not be negative")
        classification = classify(name)
        artifact = ProjectArtifact(
            id=self._id_factory(),
            file_name=name,
            file_size=int(file_size),
            file_type=(file_type or "").strip() or file_type_for(name),
            upload_date=self._clock(),
            category=classification.category,
            project_key=classification.project_key,
            project_location=classification.project_location,
        )
        records = self.cache.read()
        self.cache.write([artifact.to_record(), *records])
        LOGGER.debug(
            "Registered %s as %s for project %s", name, artifact.category, artifact.project_key
        )
        self.events.emit(
            CREATED,
            table=self.cache.table,
            id=artifact.id,
            file_name=artifact.file_name,
            category=artifact.category,
        )
        return artifact

    def delete(self, artifact_id: str) -> ProjectArtifact:
        records = self.cache.read()
        remaining = [raw for raw in records if raw.get("id") != artifact_id]
        if len(remaining) == len(records):
            raise NotFoundError(f"Artifact {artifact_id} not found")
        removed = next(raw for raw in records if raw.get("id") == artifact_id)
        self.cache.write(remaining)
        self.events.emit(DELETED, table=self.cache.table, id=artifact_id)
        return ProjectArtifact.from_record(removed)

    def categorized(self) -> CategorizedFiles:
        return organize_categorized_files(self.list())

    def projects(self) -> Dict[str, ProjectBundle]:
        return organize_files_by_project(self.list())


__all__ = ["ArtifactLibrary"]
