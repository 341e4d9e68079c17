"""Filename heuristics that classify uploaded project artifacts."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Tuple

from .models import BID, FLOORPLAN, PRICING

# Checked in order; the first group with a matching cue wins.
PRICING_CUES: Tuple[str, ...] = ("price", "cost", "quote")
PRICING_SUFFIXES: Tuple[str, ...] = (".xlsx", ".xls", ".csv")
FLOORPLAN_CUES: Tuple[str, ...] = ("floor", "plan", "blueprint", "drawing")
BID_CUES: Tuple[str, ...] = ("bid", "proposal", "contract")
DEFAULT_CATEGORY = FLOORPLAN

PROJECT_KEY_PATTERN = re.compile(r"^([A-Z0-9]+)", re.IGNORECASE)
LOCATION_PATTERN = re.compile(r"-\s*([A-Za-z\s]+(?:,\s*[A-Z]{2})?)", re.IGNORECASE)


@dataclass(frozen=True)
class Classification:
    category: str
    project_key: Optional[str]
    project_location: Optional[str]


def detect_file_category(file_name: str) -> str:
    """Return ``pricing``, ``floorplan`` or ``bid`` for ``file_name``.

    Matching is a case-insensitive substring test. Spreadsheet suffixes count
    as pricing cues. Names with no cue at all fall back to ``floorplan``.
    """

    lowered = file_name.lower()
    if any(cue in lowered for cue in PRICING_CUES) or lowered.endswith(PRICING_SUFFIXES):
        return PRICING
    if any(cue in lowered for cue in FLOORPLAN_CUES):
        return FLOORPLAN
    if any(cue in lowered for cue in BID_CUES):
        return BID
    return DEFAULT_CATEGORY


def extract_project_key(file_name: str) -> Optional[str]:
    """Leading alphanumeric token, e.g. ``"AAA12"`` for ``"AAA12 - Jackson.pdf"``."""

    match = PROJECT_KEY_PATTERN.match(file_name)
    return match.group(1) if match else None


def extract_project_location(file_name: str) -> Optional[str]:
    """Text after the first hyphen, optionally ending in a region code.

    ``"AAA12 - Ridgeland, MS_plan.pdf"`` yields ``"Ridgeland, MS"``.
    """

    match = LOCATION_PATTERN.search(file_name)
    if not match:
        return None
    location = match.group(1).strip()
    return location or None


def file_type_for(file_name: str) -> str:
    _stem, dot, suffix = file_name.rpartition(".")
    if not dot or not suffix:
        return "unknown"
    return suffix.lower()


def classify(file_name: str) -> Classification:
    return Classification(
        category=detect_file_category(file_name),
        project_key=extract_project_key(file_name),
        project_location=extract_project_location(file_name),
    )


__all__ = [
    "Classification",
    "classify",
    "detect_file_category",
    "extract_project_key",
    "extract_project_location",
    "file_type_for",
]
