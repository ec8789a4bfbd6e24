import uuid

from sqlalchemy import JSON, Boolean, Column, Date, DateTime, Index, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import JSONB

from .database import Base

JsonList = JSON().with_variant(JSONB(), "postgresql")


class Profile(Base):
    __tablename__ = "profile"

    netid = Column(String, primary_key=True)
    first_name = Column(String, nullable=True)
    gender = Column(String, nullable=False)
    birthdate = Column(Date, nullable=False)
    year = Column(Integer, nullable=False)
    school = Column(String, nullable=False)
    majors = Column(JsonList, nullable=False, default=list)
    interests = Column(JsonList, nullable=False, default=list)
    clubs = Column(JsonList, nullable=False, default=list)


class Preferences(Base):
    __tablename__ = "preferences"

    netid = Column(String, primary_key=True)
    age_min = Column(Integer, nullable=False)
    age_max = Column(Integer, nullable=False)
    genders = Column(JsonList, nullable=False, default=list)
    years = Column(JsonList, nullable=False, default=list)
    schools = Column(JsonList, nullable=False, default=list)
    majors = Column(JsonList, nullable=False, default=list)


class BlockRelation(Base):
    __tablename__ = "block_relation"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    blocker_netid = Column(String, nullable=False)
    blocked_netid = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("blocker_netid", "blocked_netid", name="uq_block_pair"),
        Index("idx_block_relation_blocker", "blocker_netid"),
        Index("idx_block_relation_blocked", "blocked_netid"),
    )


class WeeklyPrompt(Base):
    __tablename__ = "weekly_prompt"

    prompt_id = Column(String, primary_key=True)
    question = Column(Text, nullable=False, default="")
    release_date = Column(Date, nullable=True)
    status = Column(String, nullable=False, default="active")
    active = Column(Boolean, nullable=False, default=True)
    matches_generated_at = Column(DateTime(timezone=True), nullable=True)


class PromptAnswer(Base):
    __tablename__ = "prompt_answer"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    netid = Column(String, nullable=False)
    prompt_id = Column(String, nullable=False)
    answer = Column(Text, nullable=False, default="")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("netid", "prompt_id", name="uq_prompt_answer_user"),
        Index("idx_prompt_answer_prompt_id", "prompt_id"),
    )


class WeeklyMatch(Base):
    __tablename__ = "weekly_match"

    id = Column(String, primary_key=True)
    netid = Column(String, nullable=False)
    prompt_id = Column(String, nullable=False)
    matches = Column(JsonList, nullable=False, default=list)
    revealed = Column(JsonList, nullable=False, default=list)
    chat_unlocked = Column(JsonList, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("netid", "prompt_id", name="uq_weekly_match_user_prompt"),
        Index("idx_weekly_match_prompt_id", "prompt_id"),
        Index("idx_weekly_match_netid", "netid"),
    )


class Nudge(Base):
    __tablename__ = "nudge"

    id = Column(String, primary_key=True)
    from_netid = Column(String, nullable=False)
    to_netid = Column(String, nullable=False)
    prompt_id = Column(String, nullable=False)
    mutual = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (Index("idx_nudge_prompt_id", "prompt_id"),)


class Notification(Base):
    __tablename__ = "notification"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    netid = Column(String, nullable=False, index=True)
    type = Column(String, nullable=False)
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    read = Column(Boolean, nullable=False, default=False)
    payload = Column(JsonList, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Conversation(Base):
    __tablename__ = "conversation"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    participant_a = Column(String, nullable=False)
    participant_b = Column(String, nullable=False)
    prompt_id = Column(String, nullable=False)
    week_start_date = Column(Date, nullable=False)
    last_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (UniqueConstraint("participant_a", "participant_b", name="uq_conversation_pair"),)
