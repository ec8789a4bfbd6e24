from datetime import date, datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class ProfileRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    netid: str
    first_name: str | None = None
    gender: str
    birthdate: date
    year: int
    school: str
    majors: list[str] = Field(default_factory=list)
    interests: list[str] = Field(default_factory=list)
    clubs: list[str] = Field(default_factory=list)


class AgeRange(BaseModel):
    min: int
    max: int


class PreferencesRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    netid: str
    age_min: int
    age_max: int
    genders: list[str] = Field(default_factory=list)
    years: list[str] = Field(default_factory=list)
    schools: list[str] = Field(default_factory=list)
    majors: list[str] = Field(default_factory=list)

    @property
    def age_range(self) -> AgeRange:
        return AgeRange(min=self.age_min, max=self.age_max)


class MatchRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    netid: str
    prompt_id: str
    matches: list[Any]
    revealed: list[bool]
    chat_unlocked: list[bool] | None = None
    created_at: datetime
    expires_at: datetime

    @field_validator("created_at", "expires_at")
    @classmethod
    def _normalize_tz(cls, value: datetime) -> datetime:
        return as_utc(value)

    @property
    def doc_id(self) -> str:
        return match_doc_id(self.netid, self.prompt_id)

    def chat_unlocked_at(self, index: int) -> bool:
        if not self.chat_unlocked or index >= len(self.chat_unlocked):
            return False
        return bool(self.chat_unlocked[index])


class NudgeRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    from_netid: str
    to_netid: str
    prompt_id: str
    mutual: bool = False
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def _normalize_tz(cls, value: datetime) -> datetime:
        return as_utc(value)


class NudgeStatus(BaseModel):
    sent: bool
    received: bool
    mutual: bool
    conversation_id: str | None = None


class ValidationReport(BaseModel):
    is_valid: bool
    errors: list[str] = Field(default_factory=list)


class RevealMatchRequest(BaseModel):
    index: int


class CreateNudgeRequest(BaseModel):
    to_netid: str
    prompt_id: str


class GenerateMatchesResponse(BaseModel):
    prompt_id: str
    matched_user_count: int


class ManualMatchRequest(BaseModel):
    user1_netid: str
    user2_netid: str
    prompt_id: str
    expires_at: datetime | None = None
    append: bool = False


class ManualMatchResponse(BaseModel):
    prompt_id: str
    records: list[MatchRecord]


class MatchHistoryResponse(BaseModel):
    history: list[MatchRecord] = Field(default_factory=list)


def match_doc_id(netid: str, prompt_id: str) -> str:
    return f"{netid}_{prompt_id}"


def nudge_doc_id(from_netid: str, prompt_id: str, to_netid: str) -> str:
    return f"{from_netid}_{prompt_id}_{to_netid}"
