from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WCLBaseModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class Fight(WCLBaseModel):
    """One encounter attempt; times are on the report's millisecond clock."""

    id: int
    name: str
    start_time: int
    end_time: int
    kill: bool | None = None
    encounter_id: int = Field(0, alias="encounterID")
    difficulty: int | None = None
    fight_percentage: float | None = None

    @property
    def duration_ms(self) -> int:
        return self.end_time - self.start_time

    def relative(self, timestamp: float) -> float:
        """Milliseconds since fight start."""
        return timestamp - self.start_time


class Actor(WCLBaseModel):
    id: int
    name: str
    type: str = ""
    sub_type: str | None = None
    server: str | None = None
    icon: str | None = None

    @property
    def is_player(self) -> bool:
        return self.type == "Player"


class Ability(WCLBaseModel):
    id: int
    name: str = ""
    icon: str | None = None


class EventPage(WCLBaseModel):
    data: list[dict] = []
    next_page_timestamp: float | None = None


class PlayerEntry(WCLBaseModel):
    """One player row from a report ``table()`` response."""

    name: str
    id: int = 0
    guid: int = 0
    type: str = ""  # class name
    icon: str = ""
    item_level: float = 0
    total: float = 0
    active_time: int = 0  # ms

    @property
    def per_second(self) -> float:
        if self.active_time <= 0:
            return 0.0
        return self.total / (self.active_time / 1000)

    def percent_of(self, total_sum: float) -> float:
        if total_sum == 0:
            return 0.0
        return self.total / total_sum * 100
