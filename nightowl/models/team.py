"""Developer model — delivery staff owned by a manager, paired with a User."""

from nightowl.models import RecordMixin, _utcnow, db, iso
from nightowl.utils.helpers import parse_datetime


class Developer(RecordMixin, db.Model):
    __tablename__ = "developers"
    __table_args__ = (
        db.Index("ix_developers_manager", "manager_id"),
    )

    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=False, unique=True,
        comment="Paired developer-role login; username lives there",
    )
    name = db.Column(db.String(200), nullable=False)
    specialization = db.Column(db.String(50), nullable=False, default="general", comment="UI | AI/ML | R&D | ...")
    manager_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    user = db.relationship("User", foreign_keys=[user_id], lazy="joined")

    @property
    def username(self) -> str | None:
        return self.user.username if self.user else None

    def project_ids(self) -> list[str]:
        """Projects this developer touches, derived from phase assignments."""
        from nightowl.models.project import PhaseAssignment

        rows = (
            PhaseAssignment.query
            .filter_by(developer_id=self.id)
            .order_by(PhaseAssignment.assigned_at, PhaseAssignment.project_id)
            .all()
        )
        return list(dict.fromkeys(r.project_id for r in rows))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "username": self.username,
            "name": self.name,
            "specialization": self.specialization,
            "manager_id": self.manager_id,
            "project_ids": self.project_ids(),
            "is_active": self.is_active,
            "created_at": iso(self.created_at),
        }

    def apply_record(self, data: dict) -> None:
        # username and project_ids are derived; they are not written back
        self.user_id = data["user_id"]
        self.name = data["name"]
        self.specialization = data.get("specialization") or "general"
        self.manager_id = data["manager_id"]
        self.is_active = bool(data.get("is_active", True))
        self.created_at = parse_datetime(data.get("created_at")) or _utcnow()

    def __repr__(self) -> str:
        return f"<Developer {self.id}: {self.name}>"
