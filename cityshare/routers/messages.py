import logging
from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends

from ..auth import get_current_user
from ..deps import get_items, get_messages, get_users
from ..models import User
from ..schemas import ConversationOut, MessageCreateIn, MessageOut, message_out, user_summary_out
from ..storage import ItemRepository, MessageRepository, UserRepository
from ..ws_manager import ws_manager


logger = logging.getLogger("cityshare.messages")

router = APIRouter(prefix="/api", tags=["messages"])


@router.get("/conversations", response_model=List[ConversationOut])
def list_conversations(user: User = Depends(get_current_user), messages: MessageRepository = Depends(get_messages)):
    return [
        ConversationOut(
            conversation_id=c.conversation_id,
            other_user_id=str(c.other_user.id),
            other_user=user_summary_out(c.other_user),
            last_message=message_out(c.last_message),
            unread_count=c.unread_count,
        )
        for c in messages.list_conversations(user)
    ]


@router.get("/messages/{conversation_id}", response_model=List[MessageOut])
def list_messages(
    conversation_id: str,
    user: User = Depends(get_current_user),
    messages: MessageRepository = Depends(get_messages),
):
    return [message_out(m, with_sender=True) for m in messages.list_conversation(conversation_id, user)]


@router.post("/messages", response_model=MessageOut)
def send_message(
    payload: MessageCreateIn,
    background: BackgroundTasks,
    user: User = Depends(get_current_user),
    users: UserRepository = Depends(get_users),
    items: ItemRepository = Depends(get_items),
    messages: MessageRepository = Depends(get_messages),
):
    receiver = users.get_or_404(payload.receiver_id)
    item_id = items.get_or_404(payload.item_id).id if payload.item_id else None
    m = messages.create(user, receiver, payload.content, payload.conversation_id, item_id)
    out = message_out(m)
    # The receiver refetches over REST on push, so the row must be committed first
    messages.commit()
    # Best effort: runs after the response, never fails the request
    background.add_task(
        ws_manager.push,
        str(receiver.id),
        {"type": "message", "data": out.model_dump(mode="json", by_alias=True)},
    )
    return out


@router.patch("/messages/{message_id}/read", response_model=MessageOut)
def mark_read(message_id: str, user: User = Depends(get_current_user), messages: MessageRepository = Depends(get_messages)):
    return message_out(messages.mark_read(message_id, user))
