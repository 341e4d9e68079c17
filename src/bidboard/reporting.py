from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Iterable, Mapping

import pandas as pd
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas

from .models import CATEGORIES, BidEstimate, ProjectBundle

LINE_ITEM_COLUMNS = ["DESCRIPTION", "QUANTITY", "UNIT_PRICE", "TOTAL"]
BUNDLE_COLUMNS = ["PROJECT_KEY", "LOCATION", "PRICING", "FLOORPLAN", "BID", "COMPLETE"]


def estimate_frame(estimate: BidEstimate) -> pd.DataFrame:
    rows = [
        {
            "DESCRIPTION": item.description,
            "QUANTITY": item.quantity,
            "UNIT_PRICE": item.unit_price,
            "TOTAL": item.total,
        }
        for item in estimate.line_items
    ]
    return pd.DataFrame(rows, columns=LINE_ITEM_COLUMNS)


def bundles_frame(bundles: Mapping[str, ProjectBundle] | Iterable[ProjectBundle]) -> pd.DataFrame:
    values = bundles.values() if isinstance(bundles, Mapping) else bundles
    rows = []
    for bundle in values:
        row = {"PROJECT_KEY": bundle.project_key, "LOCATION": bundle.location or ""}
        for category in CATEGORIES:
            artifact = bundle.slot(category)
            row[category.upper()] = artifact.file_name if artifact else ""
        row["COMPLETE"] = all(bundle.slot(category) is not None for category in CATEGORIES)
        rows.append(row)
    return pd.DataFrame(rows, columns=BUNDLE_COLUMNS)


def make_summary_text(estimate: BidEstimate) -> str:
    items = estimate_frame(estimate)
    top = items.sort_values("TOTAL", ascending=False, kind="mergesort").head(3)
    return (
        f"Bid estimate for {estimate.project_key or estimate.project_id}: ${estimate.bid_estimate:,.2f} "
        f"({estimate.project_type}, confidence {estimate.confidence}%).\n"
        f"Top cost drivers:\n{top.to_string(index=False)}\n"
        f"Labor ${estimate.total_labor:,.2f}, materials ${estimate.total_materials:,.2f}, "
        f"equipment ${estimate.total_equipment:,.2f}.\n"
    )


def write_estimate_workbook(estimate: BidEstimate, path: Path) -> Path:
    """Write line items, summary and notes to an ``.xlsx`` workbook."""

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    summary = pd.DataFrame(
        [
            ("Estimate ID", estimate.id),
            ("Project", estimate.project_key or estimate.project_id),
            ("Project Type", estimate.project_type),
            ("Base Amount", estimate.base_amount),
            ("Bid Estimate", estimate.bid_estimate),
            ("Confidence", estimate.confidence),
            ("Created", estimate.created_at.isoformat()),
        ],
        columns=["FIELD", "VALUE"],
    )
    notes = pd.DataFrame({"NOTE": list(estimate.notes)})
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        summary.to_excel(writer, sheet_name="Summary", index=False)
        estimate_frame(estimate).to_excel(writer, sheet_name="LineItems", index=False)
        notes.to_excel(writer, sheet_name="Notes", index=False)
    return path


def write_bid_pdf(estimate: BidEstimate, path: Path) -> Path:
    """Render a one-page bid summary PDF."""

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    c = canvas.Canvas(str(path), pagesize=letter)
    _page_width, page_height = letter
    margin = 54
    y = page_height - margin

    c.setFont("Helvetica-Bold", 16)
    c.drawString(margin, y, f"Bid Estimate: {estimate.project_key or estimate.project_id}")
    y -= 24
    c.setFont("Helvetica", 10)
    c.drawString(margin, y, f"Prepared {estimate.created_at.strftime('%Y-%m-%d')}  |  "
                 f"Type: {estimate.project_type}  |  Confidence: {estimate.confidence}%")
    y -= 28

    c.setFont("Helvetica-Bold", 11)
    c.drawString(margin, y, "Line Item")
    c.drawRightString(margin + 460, y, "Total")
    y -= 16
    c.setFont("Helvetica", 11)
    for item in estimate.line_items:
        c.drawString(margin, y, item.description)
        c.drawRightString(margin + 460, y, f"${item.total:,.2f}")
        y -= 16
    y -= 6
    c.setFont("Helvetica-Bold", 12)
    c.drawString(margin, y, "Bid Total")
    c.drawRightString(margin + 460, y, f"${estimate.bid_estimate:,.2f}")
    y -= 30

    c.setFont("Helvetica-Bold", 11)
    c.drawString(margin, y, "Notes")
    y -= 16
    c.setFont("Helvetica", 10)
    for note in estimate.notes:
        for line in textwrap.wrap(f"- {note}", width=95):
            if y < margin:
                c.showPage()
                c.setFont("Helvetica", 10)
                y = page_height - margin
            c.drawString(margin, y, line)
            y -= 14
    c.showPage()
    c.save()
    return path
