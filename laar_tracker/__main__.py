from __future__ import annotations
import json
import logging
import sys
from typing import Any, List, Optional

from .config import Settings
from .core.app_setup import (
    create_reconciliation_job,
    create_scraper,
    create_service_container,
    initialize_application,
    parse_command_line_arguments,
)
from .core.operations import handle_error, load_parcels_from_file, scrape_parcels, validate_parcel_batch
from .exceptions import TrackerError, ValidationError
from .services.tracker_service import TrackerService

logger = logging.getLogger(__name__)


def _print(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2, default=str))


def _exit_code(result: Any) -> int:
    if isinstance(result, dict) and result.get("success") is False:
        return 1
    return 0


def run_command(args, settings: Settings) -> Any:
    if args.command == "serve":
        import uvicorn

        uvicorn.run("laar_tracker.api.server:app", host=args.host, port=args.port)
        return {"success": True}

    container = create_service_container(settings)
    store = container.store

    if args.command == "list":
        return [r.to_dict() for r in store.get_all()]
    if args.command == "stats":
        return store.get_stats()
    if args.command == "recent":
        return [r.to_dict() for r in store.get_recently_delivered(args.hours)]
    if args.command == "add":
        fields = {"parcel_id": TrackerService.clean_parcel_id(args.parcel_id), "status": args.status,
                  "origin_city": args.origin_city, "destination_city": args.destination_city}
        return store.add({k: v for k, v in fields.items() if v is not None})
    if args.command in {"add-multiple", "load-file"}:
        if args.command == "load-file":
            parcels = load_parcels_from_file(args.path)
        else:
            parcels = TrackerService.parse_parcel_list(args.parcels)
        parcels = validate_parcel_batch(parcels, settings.max_parcels_per_batch)
        return store.add_multiple([{"parcel_id": p} for p in parcels])
    if args.command == "update":
        updates = {key: getattr(args, key) for key in
                   ("status", "origin_city", "destination_city", "delivered_to", "delivered_at")
                   if getattr(args, key) is not None}
        return store.update(args.parcel_id, updates)

    scraper = create_scraper(settings)
    try:
        if args.command == "scrape":
            return scrape_parcels(
                args.parcels,
                scraper,
                delay_seconds=settings.scraping_delay_seconds,
                max_batch=settings.max_parcels_per_batch,
                store=store if args.apply else None,
            )
        return create_reconciliation_job(container, scraper).run()
    finally:
        scraper.close()


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_command_line_arguments(argv)
    try:
        settings = Settings.load()
    except TrackerError as e:
        print(f"Configuración inválida: {e}", file=sys.stderr)
        return 2

    initialize_application(settings)
    try:
        result = run_command(args, settings)
    except ValidationError as e:
        _print(handle_error(e, args.command, settings.timezone))
        return 1
    except TrackerError as e:
        logger.exception("Fatal error: %s", e)
        _print(handle_error(e, args.command, settings.timezone))
        return 2

    _print(result)
    return _exit_code(result)


if __name__ == "__main__":
    raise SystemExit(main())
