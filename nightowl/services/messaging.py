"""Message Center — user-to-user notes, optionally tied to a project."""

import logging

from nightowl.core.exceptions import Forbidden, ValidationError
from nightowl.models.work import Message
from nightowl.services import authorization as authz
from nightowl.utils.helpers import clean_str

logger = logging.getLogger(__name__)

BOXES = ("inbox", "outbox")


class MessageCenter:
    def __init__(self, store, session_slot, audit):
        self.store = store
        self.session = session_slot
        self.audit = audit

    def send(self, to_user_id: str, subject: str, content: str = "", project_id: str | None = None) -> Message:
        sender = authz.require_user(self.session.current_user())
        subject = clean_str(subject)
        if not subject:
            raise ValidationError("subject is required", details={"subject": "required"})

        with self.store.transaction("messages"):
            recipient = self.store.get("users", to_user_id)
            if not recipient.is_active:
                raise ValidationError(f"User {recipient.id} is inactive")
            if project_id is not None:
                authz.check_project_read(sender, self.store.get("projects", project_id))
            message = self.store.add("messages", Message(
                from_user_id=sender.id,
                to_user_id=recipient.id,
                project_id=project_id,
                subject=subject,
                content=clean_str(content) or "",
                is_read=False,
            ))
        self.audit.record(
            "message_sent", f"{sender.name} sent '{subject}' to {recipient.name}",
            project_id=project_id, diff={"message_id": message.id},
        )
        return message

    def list_messages(self, box: str = "inbox", *, unread_only: bool = False) -> list[Message]:
        if box not in BOXES:
            raise ValidationError(f"Unknown mailbox: {box!r}", details={"box": box})
        user = authz.require_user(self.session.current_user())
        q = self.store.query("messages")
        if box == "inbox":
            q = q.filter(Message.to_user_id == user.id)
            if unread_only:
                q = q.filter(Message.is_read.is_(False))
        else:
            q = q.filter(Message.from_user_id == user.id)
        return q.all()

    def mark_read(self, message_id: str) -> Message:
        """Recipient only; marking twice is harmless."""
        user = authz.require_user(self.session.current_user())
        with self.store.transaction("messages"):
            message = self.store.get("messages", message_id)
            if message.to_user_id != user.id:
                raise Forbidden("Only the recipient can mark a message read", role=user.role, action="mark_read")
            message.is_read = True
        return message
