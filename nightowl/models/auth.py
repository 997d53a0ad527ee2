"""
Auth Models — user accounts for the four actor roles.

One table:
    - users: owner, manager, developer and client accounts

Users are never hard-deleted; ``is_active`` is flipped instead.
"""

from nightowl.models import RecordMixin, _utcnow, db, iso
from nightowl.utils.helpers import parse_datetime

ROLES = ("owner", "manager", "developer", "client")


class User(RecordMixin, db.Model):
    __tablename__ = "users"
    __table_args__ = (
        db.Index("ix_users_username_active", "username", "is_active"),
        db.Index("ix_users_role", "role"),
    )

    username = db.Column(db.String(150), nullable=False)
    password_hash = db.Column(db.String(256), nullable=False)
    role = db.Column(db.String(20), nullable=False, comment="owner | manager | developer | client")
    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(200))
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    last_login_at = db.Column(db.DateTime(timezone=True))

    def to_dict(self, include_secret=False):
        d = {
            "id": self.id,
            "username": self.username,
            "role": self.role,
            "name": self.name,
            "email": self.email,
            "is_active": self.is_active,
            "created_at": iso(self.created_at),
            "last_login_at": iso(self.last_login_at),
        }
        if include_secret:
            d["password_hash"] = self.password_hash
        return d

    def apply_record(self, data: dict) -> None:
        """Overwrite columns from a serialized record (see RecordStore)."""
        self.username = data["username"]
        self.password_hash = data["password_hash"]
        self.role = data["role"]
        self.name = data.get("name") or data["username"]
        self.email = data.get("email")
        self.is_active = bool(data.get("is_active", True))
        self.created_at = parse_datetime(data.get("created_at")) or _utcnow()
        self.last_login_at = parse_datetime(data.get("last_login_at"))

    def __repr__(self):
        return f"<User {self.id}: {self.username} ({self.role})>"
