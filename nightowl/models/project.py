"""
Project domain model — delivery units with four fixed phases.

Models:
    - Project: lifecycle pending → active → delivered
    - Phase: owned by a Project, addressed as (project_id, phase id)
    - PhaseAssignment: the authoritative phase → developer relation

A developer's project list is never stored; it is derived from
PhaseAssignment rows (see Developer.project_ids).
"""

from nightowl.models import RecordMixin, _utcnow, db, iso
from nightowl.utils.helpers import parse_date, parse_datetime

PROJECT_STATUSES = ("pending", "active", "delivered")
PHASE_STATUSES = ("not_started", "in_progress", "completed")
PHASE_COUNT = 4


class Project(RecordMixin, db.Model):
    __tablename__ = "projects"
    __table_args__ = (
        db.Index("ix_projects_status", "status"),
        db.Index("ix_projects_manager", "manager_id"),
    )

    client_id = db.Column(
        db.String(36), db.ForeignKey("clients.id"), nullable=False, index=True,
    )
    manager_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=True)
    client_user_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=True, index=True,
        comment="Client portal account provisioned at activation",
    )
    status = db.Column(
        db.String(20), nullable=False, default="pending",
        comment="pending | active | delivered",
    )
    earnings = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=True)
    assigned_at = db.Column(db.DateTime(timezone=True))
    delivered_at = db.Column(db.DateTime(timezone=True))
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    client = db.relationship("Client", lazy="joined")
    client_user = db.relationship("User", foreign_keys=[client_user_id], lazy="joined")
    phases = db.relationship(
        "Phase", back_populates="project", order_by="Phase.position",
        cascade="all, delete-orphan", lazy="selectin",
    )

    @property
    def client_credentials(self) -> dict | None:
        """Display copy of the client portal account; the secret stays on the User."""
        user = self.client_user
        if user is None:
            return None
        return {"user_id": user.id, "username": user.username, "email": user.email, "name": user.name}

    def phase(self, phase_id: str):
        for ph in self.phases:
            if ph.id == phase_id:
                return ph
        return None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "client_id": self.client_id,
            "manager_id": self.manager_id,
            "client_user_id": self.client_user_id,
            "status": self.status,
            "earnings": float(self.earnings) if self.earnings is not None else None,
            "assigned_at": iso(self.assigned_at),
            "delivered_at": iso(self.delivered_at),
            "created_at": iso(self.created_at),
            "client_credentials": self.client_credentials,
            "phases": [ph.to_dict() for ph in self.phases],
        }

    def apply_record(self, data: dict) -> None:
        self.client_id = data["client_id"]
        self.manager_id = data.get("manager_id")
        self.client_user_id = data.get("client_user_id")
        self.status = data.get("status") or "pending"
        self.earnings = data.get("earnings")
        self.assigned_at = parse_datetime(data.get("assigned_at"))
        self.delivered_at = parse_datetime(data.get("delivered_at"))
        self.created_at = parse_datetime(data.get("created_at")) or _utcnow()

        existing = {ph.id: ph for ph in self.phases}
        phases = []
        for position, ph_data in enumerate(data.get("phases") or []):
            ph = existing.get(ph_data["id"]) or Phase(id=ph_data["id"])
            ph.position = position
            ph.apply_record(ph_data)
            phases.append(ph)
        self.phases = phases

    def __repr__(self) -> str:
        return f"<Project {self.id}: {self.status}>"


class Phase(db.Model):
    """One of the four delivery phases of a Project."""

    __tablename__ = "project_phases"

    project_id = db.Column(
        db.String(36), db.ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True,
    )
    id = db.Column(db.String(36), primary_key=True, comment="phase-1 .. phase-4")
    position = db.Column(db.Integer, nullable=False, default=0)
    name = db.Column(db.String(100), nullable=False)
    status = db.Column(
        db.String(20), nullable=False, default="not_started",
        comment="not_started | in_progress | completed",
    )
    start_date = db.Column(db.Date)
    end_date = db.Column(db.Date)

    project = db.relationship("Project", back_populates="phases")
    assignments = db.relationship(
        "PhaseAssignment", back_populates="phase", order_by="PhaseAssignment.position",
        cascade="all, delete-orphan", lazy="selectin",
    )

    @property
    def assigned_developers(self) -> list[str]:
        return [a.developer_id for a in self.assignments]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status,
            "assigned_developers": self.assigned_developers,
            "start_date": iso(self.start_date),
            "end_date": iso(self.end_date),
        }

    def apply_record(self, data: dict) -> None:
        self.name = data.get("name") or self.id
        self.status = data.get("status") or "not_started"
        self.start_date = parse_date(data.get("start_date"))
        self.end_date = parse_date(data.get("end_date"))

        existing = {a.developer_id: a for a in self.assignments}
        assignments = []
        for developer_id in dict.fromkeys(data.get("assigned_developers") or []):
            a = existing.get(developer_id) or PhaseAssignment(developer_id=developer_id)
            a.position = len(assignments)
            assignments.append(a)
        self.assignments = assignments


class PhaseAssignment(db.Model):
    """Developer assigned to a phase. The composite key makes the set duplicate-free."""

    __tablename__ = "phase_assignments"
    __table_args__ = (
        db.ForeignKeyConstraint(
            ["project_id", "phase_id"],
            ["project_phases.project_id", "project_phases.id"],
            ondelete="CASCADE",
        ),
        db.Index("ix_phase_assignments_developer", "developer_id"),
    )

    project_id = db.Column(db.String(36), primary_key=True)
    phase_id = db.Column(db.String(36), primary_key=True)
    developer_id = db.Column(db.String(36), db.ForeignKey("developers.id"), primary_key=True)
    position = db.Column(db.Integer, nullable=False, default=0)
    assigned_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    phase = db.relationship("Phase", back_populates="assignments")


def seed_phases() -> list[Phase]:
    """The four phases every new project starts with."""
    return [
        Phase(id=f"phase-{n}", name=f"Phase {n}", position=n - 1, status="not_started")
        for n in range(1, PHASE_COUNT + 1)
    ]
