"""Core records describing forum topics and sub-forums."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from typing import Any, Iterator, Mapping


def _normalise_key(key: str) -> str:
    return key.replace("_", "").lower()


def _matching_kwargs(cls: type, data: Mapping[str, Any]) -> dict[str, Any]:
    """Map keys in either snake_case or CamelCase form onto field names."""
    lookup = {_normalise_key(f.name): f.name for f in fields(cls)}
    kwargs: dict[str, Any] = {}
    for key, value in data.items():
        name = lookup.get(_normalise_key(str(key)))
        if name is not None:
            kwargs[name] = value
    return kwargs


@dataclass
class Topic:
    """A single forum topic as listed in a topic index."""

    id: str = ""
    sub_forum_id: str = ""
    title: str = ""
    url: str = ""
    author_username: str = ""
    replies: int = 0
    views: int = 0
    last_post_username: str = ""
    last_post_timestamp_raw: str = ""
    is_sticky: bool = False
    is_locked: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Topic":
        """Build a topic; keys are matched ignoring case and underscores."""
        return cls(**_matching_kwargs(cls, data))


@dataclass
class SubForum:
    """A sub-forum together with the topics that belong to it."""

    id: str = ""
    name: str = ""
    url: str = ""
    topic_count: int = 0
    topics: list[Topic] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "url": self.url,
            "topic_count": self.topic_count,
            "topics": [topic.to_dict() for topic in self.topics],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SubForum":
        """Build a sub-forum; keys are matched ignoring case and underscores."""
        kwargs = _matching_kwargs(cls, data)
        raw_topics = kwargs.get("topics") or []
        kwargs["topics"] = [
            t if isinstance(t, Topic) else Topic.from_dict(t) for t in raw_topics
        ]
        return cls(**kwargs)


@dataclass
class MasterTopicList:
    """The globally ordered, de-duplicated list of topics to archive."""

    topics: list[Topic] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.topics)

    def __iter__(self) -> Iterator[Topic]:
        return iter(self.topics)


@dataclass(frozen=True)
class SubForumNameAndURL:
    """Name and URL of a sub-forum as read from the sub-forum list."""

    name: str
    url: str