"""Construction bidding engine: file classification, price sheets, sync and bid estimates."""

from .aggregator import organize_categorized_files, organize_files_by_project, paginate_projects
from .artifacts import ArtifactLibrary
from .cache import JsonFileStore, LocalCache, MemoryStore
from .classifier import classify, detect_file_category
from .config import Config, RetryPolicy, load_config
from .errors import (
    BidboardError,
    NotFoundError,
    RemoteError,
    StorageError,
    SyncInProgressError,
    ValidationError,
)
from .estimator import BidEstimator, BidLedger, EstimateRequest
from .events import EventBus
from .pricesheet import PriceSheet
from .remote import HttpPriceCatalog, InMemoryCatalog
from .sync import SyncReconciler, SyncResult

__all__ = [
    "ArtifactLibrary",
    "BidEstimator",
    "BidLedger",
    "BidboardError",
    "Config",
    "EstimateRequest",
    "EventBus",
    "HttpPriceCatalog",
    "InMemoryCatalog",
    "JsonFileStore",
    "LocalCache",
    "MemoryStore",
    "NotFoundError",
    "PriceSheet",
    "RemoteError",
    "RetryPolicy",
    "StorageError",
    "SyncInProgressError",
    "SyncReconciler",
    "SyncResult",
    "ValidationError",
    "classify",
    "detect_file_category",
    "load_config",
    "organize_categorized_files",
    "organize_files_by_project",
    "paginate_projects",
]
