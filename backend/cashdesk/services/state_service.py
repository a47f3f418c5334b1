# Overview: Local state cache; versioned JSON blobs per store kept in the state_blobs table.

"""
State Cache Service

WHY: The terminal keeps its working state (session, carts, offers, catalog,
sales) in memory. This service snapshots each store into one row of
state_blobs so a restart picks up where the counter left off.

BLOB LAYOUT:
Each row's payload is a JSON document:

    {"version": N, "data": <store.to_state()>}

The version is also stored in its own column. On load, a blob older than
CURRENT_VERSIONS[key] is passed through the registered migrations one
version at a time before the store sees it. A blob newer than this build
understands is refused.
"""

from __future__ import annotations

import json
import logging
from decimal import Decimal
from typing import Callable

from ..extensions import db
from ..models import StateBlob

logger = logging.getLogger(__name__)

STATE_AUTH = "auth"
STATE_CART = "cart"
STATE_OFFERS = "offers"
STATE_PRODUCTS = "products"
STATE_SALES = "sales"
STATE_KEYS = (STATE_AUTH, STATE_CART, STATE_OFFERS, STATE_PRODUCTS, STATE_SALES)

CURRENT_VERSIONS: dict[str, int] = {key: 1 for key in STATE_KEYS}

# (key, from_version) -> function(data) -> data at from_version + 1
MIGRATIONS: dict[tuple[str, int], Callable[[dict], dict]] = {}


class StateError(Exception):
    """Raised when a cached blob cannot be read back."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def register_migration(key: str, from_version: int):
    """Decorator registering an upgrade of `key` blobs from `from_version`."""
    def decorator(fn: Callable[[dict], dict]):
        MIGRATIONS[(key, from_version)] = fn
        return fn
    return decorator


def _json_default(value):
    if isinstance(value, Decimal):
        return str(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def encode_blob(key: str, data: dict) -> str:
    return json.dumps(
        {"version": CURRENT_VERSIONS[key], "data": data},
        default=_json_default,
        sort_keys=True,
    )


def decode_blob(key: str, payload: str) -> dict:
    """Parse a stored payload and bring it up to the current version."""
    try:
        document = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise StateError(f"State blob '{key}' is not valid JSON", details={"key": key}) from exc

    if not isinstance(document, dict) or "data" not in document:
        raise StateError(f"State blob '{key}' has no data section", details={"key": key})

    version = int(document.get("version") or 1)
    current = CURRENT_VERSIONS.get(key, 1)
    data = document["data"]

    if version > current:
        raise StateError(
            f"State blob '{key}' was written by a newer version",
            details={"key": key, "version": version, "supported": current},
        )

    while version < current:
        migrate = MIGRATIONS.get((key, version))
        if migrate is None:
            raise StateError(
                f"No migration for state blob '{key}' from version {version}",
                details={"key": key, "version": version},
            )
        logger.info("Migrating state blob %s from version %s", key, version)
        data = migrate(data)
        version += 1

    return data


class StateStore:
    """Reads and writes store snapshots through the SQLAlchemy session."""

    def save(self, key: str, data: dict) -> StateBlob:
        if key not in CURRENT_VERSIONS:
            raise StateError(f"Unknown state key: {key}")
        row = db.session.get(StateBlob, key)
        payload = encode_blob(key, data)
        if row is None:
            row = StateBlob(key=key, version=CURRENT_VERSIONS[key], payload=payload)
            db.session.add(row)
        else:
            row.version = CURRENT_VERSIONS[key]
            row.payload = payload
        return row

    def save_all(self, snapshots: dict[str, dict]) -> None:
        """Write several blobs in one transaction."""
        try:
            for key, data in snapshots.items():
                self.save(key, data)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

    def load(self, key: str) -> dict | None:
        """Current-version data for `key`, or None when nothing is cached."""
        row = db.session.get(StateBlob, key)
        if row is None:
            return None
        return decode_blob(key, row.payload)

    def load_all(self) -> dict[str, dict]:
        loaded = {}
        for key in STATE_KEYS:
            data = self.load(key)
            if data is not None:
                loaded[key] = data
        return loaded

    def clear(self) -> int:
        deleted = db.session.query(StateBlob).delete()
        db.session.commit()
        return deleted

    def describe(self) -> list[dict]:
        rows = db.session.query(StateBlob).order_by(StateBlob.key.asc()).all()
        return [r.to_dict() for r in rows]
