"""Conversations and messages between accounts."""
from typing import Any, Dict, List, Optional

from ..backend.base import Backend
from ..core.clock import Clock, system_clock
from ..core.exceptions import AuthorizationError, NotFoundError, ValidationError
from ..core.logging import BusinessLogger
from .accounts import display_name


class MessagingService:
    """Messaging for one signed-in account."""

    def __init__(self, backend: Backend, account: Dict[str, Any], clock: Clock = system_clock):
        self.backend = backend
        self.account = account
        self.clock = clock

    @property
    def account_id(self) -> str:
        return self.account["id"]

    async def conversations(self, search: str = None) -> List[Dict[str, Any]]:
        result = await self.backend.table("conversations").select().execute()
        mine = [
            c for c in result.raise_for_error().rows()
            if self.account_id in (c.get("participants") or [])
        ]
        if search and search.strip():
            term = search.strip().lower()
            mine = [c for c in mine if term in (c.get("title") or "").lower()]
        mine.sort(key=lambda c: c.get("last_activity") or "", reverse=True)
        return mine

    async def get_conversation(self, conversation_id: str) -> Dict[str, Any]:
        result = await self.backend.table("conversations").select().eq("id", conversation_id).limit(1).execute()
        conversation = result.raise_for_error().first()
        if conversation is None:
            raise NotFoundError(f"Conversation {conversation_id} not found")
        if self.account_id not in (conversation.get("participants") or []):
            raise AuthorizationError("You are not a participant in this conversation")
        return conversation

    async def _title_for(self, participants: List[str]) -> str:
        names = []
        for participant_id in participants:
            if participant_id == self.account_id:
                continue
            result = await self.backend.table("users").select().eq("id", participant_id).limit(1).execute()
            user = result.first() if result.ok else None
            names.append(display_name(user) if user else "Unknown User")
        return ", ".join(names) or "New Conversation"

    async def create_conversation(self, participant_ids: List[str], title: Optional[str] = None) -> Dict[str, Any]:
        """Return the existing conversation for this participant set, or start one."""
        participants = list(dict.fromkeys(participant_ids))
        if self.account_id not in participants:
            participants.append(self.account_id)
        if len(participants) < 2:
            raise ValidationError("A conversation needs at least one other participant")

        for conversation in await self.conversations():
            if set(conversation.get("participants") or []) == set(participants):
                return conversation

        now = self.clock.now().isoformat()
        result = await self.backend.table("conversations").insert({
            "participants": participants,
            "title": title or await self._title_for(participants),
            "last_message": None,
            "last_activity": now,
            "created_at": now,
        }).execute()
        return result.raise_for_error().first()

    async def messages(self, conversation_id: str) -> List[Dict[str, Any]]:
        await self.get_conversation(conversation_id)
        result = await (
            self.backend.table("messages").select()
            .eq("conversation_id", conversation_id)
            .order("timestamp")
            .execute()
        )
        return result.raise_for_error().rows()

    async def send_message(self, conversation_id: str, content: str, message_type: str = "text") -> Dict[str, Any]:
        if not content or not content.strip():
            raise ValidationError("Message cannot be empty")
        await self.get_conversation(conversation_id)

        now = self.clock.now().isoformat()
        result = await self.backend.table("messages").insert({
            "conversation_id": conversation_id,
            "sender_id": self.account_id,
            "sender_name": display_name(self.account),
            "content": content,
            "type": message_type,
            "timestamp": now,
            "read": False,
        }).execute()
        message = result.raise_for_error().first()

        await self.backend.table("conversations").update({
            "last_message": {
                "content": content,
                "timestamp": now,
                "sender_name": message["sender_name"],
            },
            "last_activity": now,
        }).eq("id", conversation_id).execute()

        BusinessLogger.log_message_sent(message["id"], conversation_id, self.account_id)
        return message

    async def mark_read(self, conversation_id: str) -> int:
        """Mark other participants' messages as read; returns how many changed."""
        marked = 0
        for message in await self.messages(conversation_id):
            if message.get("sender_id") != self.account_id and not message.get("read"):
                result = await self.backend.table("messages").update({"read": True}).eq("id", message["id"]).execute()
                result.raise_for_error()
                marked += 1
        return marked

    async def unread_count(self, conversation_id: str = None) -> int:
        if conversation_id is not None:
            conversation_ids = {conversation_id}
        else:
            conversation_ids = {c["id"] for c in await self.conversations()}
        result = await self.backend.table("messages").select().eq("read", False).execute()
        return sum(
            1 for m in result.raise_for_error().rows()
            if m.get("conversation_id") in conversation_ids and m.get("sender_id") != self.account_id
        )
