"""
Opano — Demo workspace.

The starting users, channels and messages a fresh workspace is seeded with.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from opano.data.messages import dm_conversation_id
from opano.data.models import Channel, Message, Role, User, utcnow

CURRENT_USER_ID = "u1"

USERS: list[User] = [
    User(
        id="u1", name="Hassaan", email="hassaan@example.com", role=Role.ADMIN,
        is_online=True, designation="Lead Developer",
        avatar_url="https://placehold.co/40x40.png?text=ME",
    ),
    User(
        id="u2", name="Hanzlah", email="hanzlah@example.com",
        designation="Frontend Developer",
        avatar_url="https://placehold.co/40x40.png?text=HA",
    ),
    User(
        id="u3", name="Huzaifa", email="huzaifa@example.com", is_online=True,
        designation="Backend Developer",
        avatar_url="https://placehold.co/40x40.png?text=HU",
    ),
    User(
        id="u4", name="Fahad", email="fahad@example.com",
        designation="QA Engineer",
        avatar_url="https://placehold.co/40x40.png?text=FA",
    ),
    User(
        id="u5", name="Areeb", email="areeb@example.com", is_online=True,
        designation="UI/UX Designer",
        avatar_url="https://placehold.co/40x40.png?text=AR",
    ),
]

CHANNELS: list[Channel] = [
    Channel(
        id="c1", name="general", description="General chat for everyone",
        member_ids=("u1", "u2", "u3", "u4", "u5"), created_by="u1",
    ),
    Channel(
        id="c2", name="project-alpha", description="Discussions for Project Alpha",
        is_private=True, member_ids=("u1", "u2", "u3"), created_by="u1",
    ),
]


def _msg(
    msg_id: str, conv: str, user_id: str, content: str, sent: datetime,
    reactions: dict[str, tuple[str, ...]] | None = None,
) -> Message:
    return Message(
        id=msg_id, conversation_id=conv, user_id=user_id, content=content,
        timestamp=sent, sent_at=sent, reactions=reactions or {},
    )


def seed_messages(now: datetime | None = None) -> dict[str, list[Message]]:
    now = now or utcnow()

    def ago(seconds: int) -> datetime:
        return now - timedelta(seconds=seconds)

    dm_hanzlah = dm_conversation_id("u1", "u2")
    notes = dm_conversation_id("u1", "u1")
    return {
        "c1": [
            _msg("m1", "c1", "u2", "Hello everyone!", ago(100), {"👍": ("u1",)}),
            _msg("m2", "c1", "u1", "Hi Hanzlah!", ago(90)),
        ],
        "c2": [
            _msg("m3", "c2", "u1", "Project Alpha meeting at 3 PM.", ago(50)),
        ],
        dm_hanzlah: [
            _msg("dm1", dm_hanzlah, "u1", "Hey Hanzlah, how are you?", ago(200)),
            _msg("dm2", dm_hanzlah, "u2", "Doing good, Hassaan! You?", ago(190)),
        ],
        notes: [
            _msg("self1", notes, "u1", "Remember to deploy on Friday.", ago(300)),
        ],
    }
