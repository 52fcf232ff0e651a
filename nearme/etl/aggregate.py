"""Combine adapter outputs into one deduplicated, identified dataset."""

import json
import logging
import os
import re
import tempfile
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from nearme.etl.transform import from_dict, to_dict
from nearme.models import Dispensary

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(name: str) -> str:
    return _NON_ALNUM.sub("-", (name or "").lower()).strip("-")


def generate_id(dispensary: Dispensary, index: int) -> str:
    return f"{dispensary.state.lower()}-{slugify(dispensary.name)}-{index}"


def dedupe_key(dispensary: Dispensary) -> Tuple[str, ...]:
    """License number when present, else (state, city, name) lowercased."""
    if dispensary.license_number:
        return ("license", dispensary.state, dispensary.license_number)
    return ("name", dispensary.state.lower(), dispensary.city.lower(), dispensary.name.lower())


def deduplicate(dispensaries: Iterable[Dispensary]) -> List[Dispensary]:
    """First occurrence of each key wins; later duplicates are dropped."""
    seen = set()
    unique: List[Dispensary] = []
    for dispensary in dispensaries:
        key = dedupe_key(dispensary)
        if key in seen:
            continue
        seen.add(key)
        unique.append(dispensary)
    return unique


def aggregate(per_adapter_results: Sequence[Sequence[Dispensary]]) -> List[Dispensary]:
    """Concatenate adapter outputs in the given order, dedupe, and assign ids.

    Records that already carry an id from their upstream (e.g. ``google-<place_id>``)
    keep it; all others get ``{state}-{slug}-{index}`` by final position.
    """
    combined = [item for results in per_adapter_results for item in results]
    logger.info("Total before dedup: %d", len(combined))

    unique = deduplicate(combined)
    logger.info("Total after dedup: %d", len(unique))

    return [
        replace(item, id=item.id or generate_id(item, index))
        for index, item in enumerate(unique)
    ]


def build_payload(records: Sequence[Dispensary], generated_at: Optional[datetime] = None) -> Dict[str, Any]:
    generated_at = generated_at or datetime.now(timezone.utc)
    return {
        "generatedAt": generated_at.isoformat().replace("+00:00", "Z"),
        "count": len(records),
        "dispensaries": [to_dict(item) for item in records],
    }


def write_output(path: str | os.PathLike, payload: Dict[str, Any]) -> Path:
    """Atomically write the dataset envelope. Failures propagate to the caller."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=".dispensaries-", suffix=".json")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(payload, fh, indent=2, ensure_ascii=False)
        os.replace(tmp_name, target)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise
    logger.info("Output written to %s (%d dispensaries)", target, payload.get("count", 0))
    return target


def parse_payload(payload: Any) -> List[Dispensary]:
    """Decode a dataset envelope; malformed records are skipped."""
    if not isinstance(payload, dict) or not isinstance(payload.get("dispensaries"), list):
        raise ValueError("dataset envelope must be an object with a 'dispensaries' list")

    records: List[Dispensary] = []
    for raw in payload["dispensaries"]:
        try:
            records.append(from_dict(raw))
        except (KeyError, TypeError, ValueError) as exc:
            logger.debug("Skipping malformed dataset record %r: %s", raw, exc)
    return records


def load_dataset(path: str | os.PathLike) -> List[Dispensary]:
    with Path(path).open("r", encoding="utf-8") as fh:
        return parse_payload(json.load(fh))
