from __future__ import annotations

from ..extensions import db
from cashdesk.time_utils import to_utc_z


class StateBlob(db.Model):
    """
    One persisted store snapshot (auth, cart, offers, products, sales).

    The payload is the JSON document produced by the owning store; version
    tracks its layout so older cached rows can be migrated on load.
    """
    __tablename__ = "state_blobs"

    key = db.Column(db.String(32), primary_key=True)
    version = db.Column(db.Integer, nullable=False, default=1)
    payload = db.Column(db.Text, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "version": self.version,
            "size": len(self.payload or ""),
            "updated_at": to_utc_z(self.updated_at),
        }
