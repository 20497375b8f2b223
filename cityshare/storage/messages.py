from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session, joinedload

from ..errors import Forbidden, NotFound, ValidationError
from ..models import Message, User
from ..utils.ids import conversation_id_for, conversation_participants, parse_uuid


class Conversation:
    """Last-message preview of one conversation, seen from one participant."""

    def __init__(self, conversation_id: str, other_user: User, last_message: Message, unread_count: int):
        self.conversation_id = conversation_id
        self.other_user = other_user
        self.last_message = last_message
        self.unread_count = unread_count


class MessageRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, message_id) -> Message | None:
        mid = parse_uuid(message_id)
        if mid is None:
            return None
        return self.db.get(Message, mid)

    def create(self, sender: User, receiver: User, content: str, conversation_id: str | None = None, item_id=None) -> Message:
        if receiver.id == sender.id:
            raise ValidationError("Cannot send a message to yourself", code="self_message")
        text = (content or "").strip()
        if not text:
            raise ValidationError("Message content is required")
        expected = conversation_id_for(sender.id, receiver.id)
        if conversation_id:
            pair = conversation_participants(conversation_id)
            if pair is None or conversation_id_for(*pair) != expected:
                raise ValidationError("conversationId does not match the participants", code="conversation_mismatch")
        m = Message(
            conversation_id=expected,
            sender_id=sender.id,
            receiver_id=receiver.id,
            item_id=item_id,
            content=text,
            is_read=False,
        )
        self.db.add(m)
        self.db.flush()
        return m

    def list_conversation(self, conversation_id: str, caller: User) -> list[Message]:
        pair = conversation_participants(conversation_id)
        if pair is None:
            raise NotFound("Conversation not found", code="conversation_not_found")
        if caller.id not in pair:
            raise Forbidden("Not a participant of this conversation")
        key = conversation_id_for(*pair)
        return (
            self.db.query(Message)
            .options(joinedload(Message.sender))
            .filter(Message.conversation_id == key)
            .order_by(Message.created_at.asc())
            .all()
        )

    def list_conversations(self, user: User) -> list[Conversation]:
        rows = (
            self.db.query(Message)
            .filter(or_(Message.sender_id == user.id, Message.receiver_id == user.id))
            .order_by(Message.created_at.desc())
            .all()
        )
        latest: dict[str, Message] = {}
        for m in rows:
            latest.setdefault(m.conversation_id, m)
        if not latest:
            return []
        unread = dict(
            self.db.query(Message.conversation_id, func.count(Message.id))
            .filter(and_(Message.receiver_id == user.id, Message.is_read.is_(False)))
            .group_by(Message.conversation_id)
            .all()
        )
        other_ids = {(m.receiver_id if m.sender_id == user.id else m.sender_id) for m in latest.values()}
        others = {u.id: u for u in self.db.query(User).filter(User.id.in_(other_ids)).all()}
        out: list[Conversation] = []
        for cid, m in latest.items():
            other = others.get(m.receiver_id if m.sender_id == user.id else m.sender_id)
            if other is None:
                continue
            out.append(Conversation(cid, other, m, int(unread.get(cid, 0))))
        return out

    def mark_read(self, message_id, caller: User) -> Message:
        m = self.get(message_id)
        if m is None:
            raise NotFound("Message not found", code="message_not_found")
        if m.receiver_id != caller.id:
            raise Forbidden("Only the receiver can mark a message as read")
        if not m.is_read:
            m.is_read = True
            self.db.flush()
        return m

    def commit(self) -> None:
        """Make sent messages visible to other sessions before anyone is told about them."""
        self.db.commit()
