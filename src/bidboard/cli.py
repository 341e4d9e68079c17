"""Command line entry point for the bidboard engine."""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Awaitable, Callable, Optional, Sequence, TypeVar

from dotenv import load_dotenv

from .aggregator import SORT_FIELDS, paginate_projects
from .artifacts import ArtifactLibrary
from .cache import ARTIFACTS, BID_RECORDS, PRICE_ITEMS, JsonFileStore, LocalCache
from .config import Config, load_config
from .errors import BidboardError, NotFoundError, RemoteError, ValidationError
from .estimator import TYPE_FACTORS, BidEstimator, EstimateRequest, NumpyRandomSource
from .events import EventBus
from .pricesheet import PriceSheet, format_price
from .remote import HttpPriceCatalog, RemoteCatalog
from .reporting import bundles_frame, make_summary_text, write_bid_pdf, write_estimate_workbook

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Classify project files, manage prices and generate bids")
    parser.add_argument("--data-dir", help="Directory holding the JSON snapshots")
    parser.add_argument("--api-url", help="Base URL of the remote price catalog")
    parser.add_argument("--seed", type=int, help="Seed for the estimate random source")
    parser.add_argument("-v", "--verbose", action="store_true", help="Increase logging verbosity")
    commands = parser.add_subparsers(dest="command", required=True)

    upload = commands.add_parser("upload", help="Register file metadata for one or more uploads")
    upload.add_argument("paths", nargs="+", type=Path)

    commands.add_parser("files", help="List stored files by category")

    projects = commands.add_parser("projects", help="List project bundles a page at a time")
    projects.add_argument("--sort", choices=SORT_FIELDS, default="title")
    projects.add_argument("--page", type=int, default=1, help="1-based page number")
    projects.add_argument("--page-size", type=int)

    estimate = commands.add_parser("estimate", help="Generate and store a bid estimate")
    estimate.add_argument("--name", required=True, help="Project name, e.g. 'AAA12 - Jackson, MS'")
    estimate.add_argument("--type", dest="project_type", choices=sorted(TYPE_FACTORS), default="unspecified")
    estimate.add_argument("--budget", type=float)
    estimate.add_argument("--notes")
    estimate.add_argument("--project", help="Project key whose bundle the estimate belongs to")
    estimate.add_argument("--xlsx", type=Path, help="Also write the estimate workbook here")
    estimate.add_argument("--pdf", type=Path, help="Also write the bid PDF here")

    prices = commands.add_parser("prices", help="Manage the price sheet")
    price_commands = prices.add_subparsers(dest="price_command", required=True)
    price_commands.add_parser("list", help="Show all price items")
    add = price_commands.add_parser("add", help="Add a price item")
    add.add_argument("name")
    add.add_argument("price")
    add.add_argument("--category", default="")
    delete = price_commands.add_parser("delete", help="Delete a price item")
    delete.add_argument("item_id")

    commands.add_parser("sync", help="Reconcile the price sheet with the remote catalog")
    return parser.parse_args(argv)


def build_catalog(config: Config) -> Optional[RemoteCatalog]:
    if not config.remote_enabled:
        return None
    return HttpPriceCatalog(
        config.api_url,  # type: ignore[arg-type]
        token=config.api_token,
        timeout=config.retry.timeout_seconds,
    )


def _run(catalog: Optional[RemoteCatalog], operation: Callable[[], Awaitable[T]]) -> T:
    async def _runner() -> T:
        try:
            return await operation()
        finally:
            if isinstance(catalog, HttpPriceCatalog):
                await catalog.close()

    return asyncio.run(_runner())


def _cmd_upload(args: argparse.Namespace, config: Config, events: EventBus) -> int:
    library = ArtifactLibrary(LocalCache(JsonFileStore(config.data_dir), ARTIFACTS), events=events)
    for path in args.paths:
        if not path.is_file():
            raise ValidationError(f"Not a file: {path}")
        artifact = library.register_upload(path.name, path.stat().st_size)
        print(f"{artifact.id}\t{artifact.category}\t{artifact.project_key or '-'}\t{artifact.file_name}")
    return 0


def _cmd_files(args: argparse.Namespace, config: Config, events: EventBus) -> int:
    library = ArtifactLibrary(LocalCache(JsonFileStore(config.data_dir), ARTIFACTS), events=events)
    files = library.categorized()
    for label, group in (("Pricing", files.pricing), ("Floor plans", files.floorplan), ("Bids", files.bid)):
        print(f"{label} ({len(group)})")
        for artifact in group:
            print(f"  {artifact.file_name}  [{artifact.file_size} bytes, {artifact.upload_date:%Y-%m-%d}]")
    return 0


def _cmd_projects(args: argparse.Namespace, config: Config, events: EventBus) -> int:
    if args.page < 1:
        raise ValidationError("--page starts at 1")
    library = ArtifactLibrary(LocalCache(JsonFileStore(config.data_dir), ARTIFACTS), events=events)
    result = paginate_projects(
        library.projects(),
        sort_by=args.sort,
        page_size=config.page_size,
        page_index=args.page - 1,
    )
    if not result.items:
        print("No projects on this page.")
    else:
        print(bundles_frame(result.items).to_string(index=False))
    print(f"Showing {result.first_item}-{result.last_item} of {result.total_items} "
          f"(page {args.page} of {max(result.total_pages, 1)})")
    return 0


def _cmd_estimate(args: argparse.Namespace, config: Config, events: EventBus) -> int:
    store = JsonFileStore(config.data_dir)
    artifacts = LocalCache(store, ARTIFACTS)
    bundle = None
    if args.project:
        bundle = ArtifactLibrary(artifacts, events=events).projects().get(args.project)
        if bundle is None:
            raise NotFoundError(f"No files stored for project {args.project}")
    estimator = BidEstimator(
        LocalCache(store, BID_RECORDS),
        artifacts,
        random_source=NumpyRandomSource(config.seed),
        events=events,
    )
    request = EstimateRequest(
        name=args.name,
        project_type=args.project_type,
        budget=args.budget,
        notes=args.notes,
    )
    estimate = estimator.generate(request, bundle=bundle)
    print(make_summary_text(estimate), end="")
    if args.xlsx:
        LOGGER.info("Wrote %s", write_estimate_workbook(estimate, args.xlsx))
    if args.pdf:
        LOGGER.info("Wrote %s", write_bid_pdf(estimate, args.pdf))
    return 0


def _cmd_prices(args: argparse.Namespace, config: Config, events: EventBus) -> int:
    catalog = build_catalog(config)
    sheet = PriceSheet(
        LocalCache(JsonFileStore(config.data_dir), PRICE_ITEMS),
        catalog,
        events=events,
        policy=config.retry,
    )
    if args.price_command == "list":
        items = _run(catalog, sheet.load) if catalog is not None else sheet.items
        for item in items:
            category = f"  ({item.category})" if item.category else ""
            print(f"{item.id}\t{item.name}\t{format_price(item.price)}{category}")
        return 0
    if args.price_command == "add":
        sheet.add_item()
        sheet.update_draft(name=args.name, price=args.price, category=args.category)
        item = _run(catalog, sheet.save_edit) if catalog is not None else sheet.commit_edit()
        print(f"Added {item.id}: {item.name} {format_price(item.price)}")
        return 0
    outcome = _run(catalog, lambda: sheet.delete(args.item_id))
    suffix = " (local only; remote delete failed)" if outcome.local_only else ""
    print(f"Deleted {outcome.item.id}: {outcome.item.name}{suffix}")
    return 0


def _cmd_sync(args: argparse.Namespace, config: Config, events: EventBus) -> int:
    catalog = build_catalog(config)
    if catalog is None:
        raise RemoteError("No remote catalog configured; set BIDBOARD_API_URL or --api-url")
    sheet = PriceSheet(
        LocalCache(JsonFileStore(config.data_dir), PRICE_ITEMS),
        catalog,
        events=events,
        policy=config.retry,
    )
    result = _run(catalog, sheet.sync)
    summary = {
        "success": result.success,
        "created": result.created,
        "updated": result.updated,
        "records": len(result.records),
        "stage": result.stage,
        "error": result.error,
    }
    print(json.dumps(summary, indent=2))
    return 0 if result.success else 1


COMMANDS = {
    "upload": _cmd_upload,
    "files": _cmd_files,
    "projects": _cmd_projects,
    "estimate": _cmd_estimate,
    "prices": _cmd_prices,
    "sync": _cmd_sync,
}


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    load_dotenv()
    config = load_config(os.environ, args)
    setup_logging(config.verbose)
    try:
        return COMMANDS[args.command](args, config, EventBus())
    except BidboardError as exc:
        LOGGER.error("%s", exc)
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
