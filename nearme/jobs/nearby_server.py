"""HTTP entrypoint for nearby search and for triggering scrape runs (Cloud Run friendly)."""

from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Optional

import requests
from flask import Flask, jsonify, request

from nearme.core.config import get_settings
from nearme.etl.transform import to_dict
from nearme.jobs.run_scrape import run_scrape_job
from nearme.models import Coordinates
from nearme.services.dataset import DatasetClient
from nearme.services.nearby import NoDataSourceError, find_nearby
from nearme.sources import registry
from nearme.vendors import nominatim

# ---------- Logging ----------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

# ---------- App & executor ----------
app = Flask(__name__)
_executor = ThreadPoolExecutor(max_workers=1)
_dataset: Optional[DatasetClient] = None

MAX_RADIUS_MILES = 50.0


def get_dataset() -> DatasetClient:
    global _dataset
    if _dataset is None:
        settings = get_settings()
        _dataset = DatasetClient(settings.dataset_url, ttl_hours=settings.dataset_ttl_hours)
    return _dataset


def _parse_float(name: str, raw: Any) -> float:
    try:
        return float(raw)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be numeric") from None


# ---------- Routes ----------


@app.get("/")
def root() -> Any:
    """Simple root to avoid 404 on GET /"""
    return "ok", 200


@app.get("/healthz")
def healthcheck() -> Any:
    """Lightweight health endpoint; reads settings only."""
    settings = get_settings()
    return (
        jsonify(
            {
                "status": "ok",
                "worker_port_config": getattr(settings, "worker_port", None),
                "dataset_url": settings.dataset_url,
                "revision": os.getenv("K_REVISION", "unknown"),
            }
        ),
        200,
    )


@app.get("/nearby")
def nearby() -> Any:
    """
    Dispensaries around a point, closest first.
    Required query params: lat, lon. Optional: radius (miles).
    """
    args = request.args
    if not args.get("lat") or not args.get("lon"):
        return jsonify({"error": "lat and lon are required"}), 400

    try:
        lat = _parse_float("lat", args["lat"])
        lon = _parse_float("lon", args["lon"])
        radius_raw = args.get("radius")
        radius = get_settings().search_radius_miles if radius_raw is None else _parse_float("radius", radius_raw)
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400

    if not (-90 <= lat <= 90 and -180 <= lon <= 180):
        return jsonify({"error": "lat/lon out of range"}), 400
    if not (0 < radius <= MAX_RADIUS_MILES):
        return jsonify({"error": f"radius must be between 0 and {MAX_RADIUS_MILES:g} miles"}), 400

    try:
        result = find_nearby(Coordinates(lat, lon), radius, dataset=get_dataset())
    except NoDataSourceError as exc:
        logger.warning("Nearby search failed for (%.4f, %.4f): %s", lat, lon, exc)
        return jsonify({"error": "Could not load dispensaries. Try again later."}), 503

    return (
        jsonify(
            {
                "data": {
                    "count": len(result.dispensaries),
                    "stale": result.stale,
                    "dispensaries": [to_dict(item) for item in result.dispensaries],
                }
            }
        ),
        200,
    )


@app.get("/places")
def places() -> Any:
    """Location suggestions for a free-text query (US only)."""
    query = (request.args.get("q") or "").strip()
    if not query:
        return jsonify({"data": []}), 200

    try:
        results = nominatim.search(query)
    except (requests.RequestException, nominatim.NominatimError) as exc:
        logger.warning("Place search failed for %r: %s", query, exc)
        return jsonify({"error": "place search unavailable"}), 502

    suggestions = []
    for result in results:
        try:
            suggestions.append(nominatim.to_place(result))
        except (KeyError, TypeError, ValueError):
            logger.debug("Skipping malformed place result: %s", result)
    return jsonify({"data": suggestions}), 200


@app.post("/scrape")
def enqueue_scrape() -> Any:
    """
    Enqueue a full scrape run.
    Optional JSON fields: only (list of adapter names), retry_not_found (bool)
    """
    payload: Dict[str, Any] = request.get_json(silent=True) or {}

    only = payload.get("only")
    if only is not None:
        if not isinstance(only, list) or not all(isinstance(name, str) for name in only):
            return jsonify({"error": "only must be a list of adapter names"}), 400
        try:
            registry.select(only)
        except ValueError as exc:
            return jsonify({"error": str(exc)}), 400

    settings = get_settings()
    job_args = dict(
        output_path=settings.output_path,
        geocode_cache_path=settings.geocode_cache_path,
        only=only,
        workers=settings.scraper_workers,
        retry_not_found=bool(payload.get("retry_not_found", False)),
    )

    logger.info("Queueing scrape job: %s", job_args)
    _executor.submit(_run_job_safe, job_args)

    return jsonify({"data": {"status": "queued"}}), 202


# ---------- Internals ----------


def _run_job_safe(job_args: Dict[str, Any]) -> None:
    try:
        run_scrape_job(**job_args)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Scrape job failed: %s", exc)
    else:
        get_dataset().invalidate()


def main() -> None:
    """Cloud Run injects PORT; fall back to WORKER_PORT locally."""
    env_port = os.getenv("PORT")
    logger.info("[BOOT] ENV PORT=%s", env_port)

    port = int(env_port or get_settings().worker_port)
    logger.info("[BOOT] Binding on 0.0.0.0:%d", port)

    app.run(host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
