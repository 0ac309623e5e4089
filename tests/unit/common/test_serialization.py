"""Tests for common.serialization module."""

from dataclasses import dataclass, field
from datetime import datetime, timezone

from common.serialization import serialize_dataclass
from news_db.reports import GroupView


@dataclass
class SampleWithNested:
    name: str
    metadata: dict
    history: list = field(default_factory=list)


class TestSerializeDataclass:
    def test_group_view_to_dict(self) -> None:
        published_at = datetime(2024, 3, 1, 8, 30, 0, tzinfo=timezone.utc)
        group = GroupView(
            position=0,
            headline="Fire in Gothenburg",
            original_headline="Brand i Göteborg",
            translated=True,
            link="https://www.svt.se/nyheter/1",
            score=1.5,
            published_at=published_at,
            member_count=3,
        )
        result = serialize_dataclass(group)
        assert result["published_at"] == "2024-03-01T08:30:00+00:00"
        assert result["original_headline"] == "Brand i Göteborg"
        assert result["member_count"] == 3

    def test_nested_dict_datetime_handling(self) -> None:
        dt = datetime(2024, 6, 15, 8, 30, 0, tzinfo=timezone.utc)
        obj = SampleWithNested(name="test", metadata={"updated_at": dt})
        result = serialize_dataclass(obj)
        assert result["metadata"]["updated_at"] == "2024-06-15T08:30:00+00:00"

    def test_list_datetime_handling(self) -> None:
        dt = datetime(2024, 6, 15, 8, 30, 0, tzinfo=timezone.utc)
        obj = SampleWithNested(name="test", metadata={}, history=[dt, "x"])
        result = serialize_dataclass(obj)
        assert result["history"] == ["2024-06-15T08:30:00+00:00", "x"]
