"""Read-only projections joining accounts against subscriptions and videos.

Joins are declared as :class:`RelationLookup` values and rendered into SQL
here, so call sites name what they join instead of assembling query text.
Relation and column names come from the constants below, never from input.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .auth_utils import to_isoformat
from .database import get_db_pool


@dataclass(frozen=True)
class RelationLookup:
    relation: str
    local_field: str
    foreign_field: str
    alias: str

    def count_sql(self, owner: str) -> str:
        return (
            f"(SELECT COUNT(*) FROM {self.relation} j "
            f"WHERE j.{self.foreign_field} = {owner}.{self.local_field}) AS {self.alias}"
        )

    def contains_sql(self, owner: str, member_field: str, placeholder: str, alias: str) -> str:
        return (
            f"EXISTS (SELECT 1 FROM {self.relation} j "
            f"WHERE j.{self.foreign_field} = {owner}.{self.local_field} "
            f"AND j.{member_field} = {placeholder}) AS {alias}"
        )


SUBSCRIBERS = RelationLookup(
    relation="subscriptions",
    local_field="id",
    foreign_field="channel_id",
    alias="subscribers_count",
)
SUBSCRIBED_TO = RelationLookup(
    relation="subscriptions",
    local_field="id",
    foreign_field="subscriber_id",
    alias="channels_subscribed_to_count",
)
CHANNEL_FIELDS = ("id", "full_name", "username", "email", "avatar", "cover_image")
OWNER_FIELDS = ("id", "full_name", "username", "avatar")
VIDEO_FIELDS = (
    "id",
    "title",
    "description",
    "video_file",
    "thumbnail",
    "duration",
    "views",
    "is_published",
    "created_at",
    "updated_at",
)


def build_channel_profile_query() -> str:
    projected = ",\n  ".join(
        [f"u.{field}" for field in CHANNEL_FIELDS]
        + [
            SUBSCRIBERS.count_sql("u"),
            SUBSCRIBED_TO.count_sql("u"),
            SUBSCRIBERS.contains_sql("u", "subscriber_id", "$2", "is_subscribed"),
        ]
    )
    return f"SELECT\n  {projected}\nFROM users u\nWHERE u.username = $1"


def build_watch_history_query() -> str:
    projected = ",\n  ".join(
        [f"v.{field}" for field in VIDEO_FIELDS]
        + [f"o.{field} AS owner_{field}" for field in OWNER_FIELDS]
    )
    return (
        f"SELECT\n  {projected}\n"
        "FROM users u\n"
        "CROSS JOIN LATERAL unnest(u.watch_history) WITH ORDINALITY AS h(video_id, position)\n"
        "JOIN videos v ON v.id = h.video_id\n"
        "LEFT JOIN users o ON o.id = v.owner_id\n"
        "WHERE u.id = $1\n"
        "ORDER BY h.position"
    )


CHANNEL_PROFILE_QUERY = build_channel_profile_query()
WATCH_HISTORY_QUERY = build_watch_history_query()


def serialize_channel(row: Any) -> dict[str, object]:
    return {
        "id": int(row["id"]),
        "fullName": row["full_name"],
        "username": row["username"],
        "email": row["email"],
        "avatar": row["avatar"],
        "coverImage": row["cover_image"] or "",
        "subscribersCount": int(row["subscribers_count"] or 0),
        "channelsSubscribedToCount": int(row["channels_subscribed_to_count"] or 0),
        "isSubscribed": bool(row["is_subscribed"]),
    }


def serialize_history_entry(row: Any) -> dict[str, object]:
    owner = None
    if row["owner_id"] is not None:
        owner = {
            "id": int(row["owner_id"]),
            "fullName": row["owner_full_name"],
            "username": row["owner_username"],
            "avatar": row["owner_avatar"],
        }
    return {
        "id": int(row["id"]),
        "title": row["title"],
        "description": row["description"],
        "videoFile": row["video_file"],
        "thumbnail": row["thumbnail"],
        "duration": float(row["duration"] or 0),
        "views": int(row["views"] or 0),
        "isPublished": bool(row["is_published"]),
        "createdAt": to_isoformat(row["created_at"]),
        "updatedAt": to_isoformat(row["updated_at"]),
        "owner": owner,
    }


async def get_channel_profile(username: str, viewer_id: int | None) -> dict[str, object] | None:
    pool = await get_db_pool()
    async with pool.acquire() as conn:
        row = await conn.fetchrow(CHANNEL_PROFILE_QUERY, username, viewer_id)
    if row is None:
        return None
    return serialize_channel(row)


async def get_watch_history(account_id: int) -> list[dict[str, object]]:
    pool = await get_db_pool()
    async with pool.acquire() as conn:
        rows = await conn.fetch(WATCH_HISTORY_QUERY, int(account_id))
    return [serialize_history_entry(row) for row in rows]
