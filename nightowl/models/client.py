"""Client (lead) model — prospects and customers entering the pipeline."""

from nightowl.models import RecordMixin, _utcnow, db, iso
from nightowl.utils.helpers import parse_datetime

CLIENT_SOURCES = ("inbound", "manual")
CLIENT_VALIDITY = ("valid", "spam")


class Client(RecordMixin, db.Model):
    """A lead captured by the owner or by the inbound intake webhook.

    Contact fields are frozen once the lead is recorded; only ``status``
    (validity) and ``is_active`` change afterwards.
    """

    __tablename__ = "clients"
    __table_args__ = (
        db.Index("ix_clients_email", "email"),
        db.Index("ix_clients_status", "status"),
    )

    full_name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(200), nullable=False)
    phone = db.Column(db.String(50))
    company = db.Column(db.String(200))
    website = db.Column(db.String(500))
    services_needed = db.Column(db.Text)
    project_description = db.Column(db.Text)
    company_summary = db.Column(db.Text)
    source = db.Column(db.String(20), nullable=False, default="manual", comment="inbound | manual")
    source_id = db.Column(db.String(100), comment="Upstream reference for inbound leads")
    status = db.Column(db.String(10), nullable=False, default="valid", comment="valid | spam")
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    submitted_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "full_name": self.full_name,
            "email": self.email,
            "phone": self.phone,
            "company": self.company,
            "website": self.website,
            "services_needed": self.services_needed,
            "project_description": self.project_description,
            "company_summary": self.company_summary,
            "source": self.source,
            "source_id": self.source_id,
            "status": self.status,
            "is_active": self.is_active,
            "submitted_at": iso(self.submitted_at),
        }

    def apply_record(self, data: dict) -> None:
        for attr in (
            "full_name", "email", "phone", "company", "website", "services_needed",
            "project_description", "company_summary", "source_id",
        ):
            setattr(self, attr, data.get(attr))
        self.source = data.get("source") or "manual"
        self.status = data.get("status") or "valid"
        self.is_active = bool(data.get("is_active", True))
        self.submitted_at = parse_datetime(data.get("submitted_at")) or _utcnow()

    def __repr__(self) -> str:
        return f"<Client {self.id}: {self.full_name}>"
