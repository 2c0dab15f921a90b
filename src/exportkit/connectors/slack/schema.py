"""
This file is used to define the schema for the config file and the
channel records read from the Slack API.
"""
from typing import Any, Dict
from dataclasses import dataclass, field

from exportkit.connectors.slack.errors import DecodeError


@dataclass
class Api:
    """Slack Web API connection settings"""
    base_url: str = "https://slack.com/api"
    token: str = ""
    timeout: float = 30.0


@dataclass
class Pagination:
    """Page sizes requested from each endpoint"""
    channel_limit: int = 1000
    history_limit: int = 200
    replies_limit: int = 200


@dataclass
class Config:
    """Main configuration container aggregating all sections."""
    api:         Api         = field(default_factory=Api)
    pagination:  Pagination  = field(default_factory=Pagination)


@dataclass(frozen=True)
class Channel:
    """Typed view over a conversations.list record.

    Only ``id`` and ``name`` are read; ``record`` is kept untouched so every
    other field is written back exactly as Slack returned it.
    """
    id: str
    name: str
    record: Dict[str, Any]

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Channel":
        """Build a Channel, rejecting records without a usable id or name."""
        if not isinstance(record, dict):
            raise DecodeError(f"channel record is not an object: {record!r}")
        channel_id = record.get("id")
        name = record.get("name")
        if not isinstance(channel_id, str) or not channel_id:
            raise DecodeError(f"channel record has no string 'id': {record!r}")
        if not isinstance(name, str) or not name:
            raise DecodeError(f"channel {channel_id} has no string 'name'")
        return cls(id=channel_id, name=name, record=record)

    @property
    def messages_entry(self) -> str:
        """Archive entry holding the channel history"""
        return f"{self.name}/messages.json"

    @property
    def replies_entry(self) -> str:
        """Archive entry holding the thread replies"""
        return f"{self.name}/replies.json"
