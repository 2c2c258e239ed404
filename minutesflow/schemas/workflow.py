"""Schemas for the minutes workflow operations."""

import datetime as dt
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class Participant(BaseModel):
    """議事録の参加者"""

    user_id: UUID
    present: bool = False


class MinutesCreate(BaseModel):
    """議事録作成リクエスト"""

    meeting_series_id: UUID = Field(..., description="会議シリーズID")
    date: dt.date = Field(..., description="会議日")
    topics: List[Dict[str, Any]] = Field(default_factory=list, description="議題一覧")
    participants: List[Participant] = Field(default_factory=list, description="参加者一覧")

    def to_document(self) -> dict:
        return {
            "meeting_series_id": self.meeting_series_id,
            "date": self.date,
            "topics": self.topics,
            "participants": [p.model_dump(mode="json") for p in self.participants],
        }


class MinutesCreated(BaseModel):
    """議事録作成レスポンス"""

    id: UUID


class FinalizeRequest(BaseModel):
    """議事録確定リクエスト"""

    send_action_items: bool = Field(default=True, description="アクションアイテムのメールを送信する")
    send_info_items: bool = Field(default=True, description="情報アイテムのメールを送信する")


class AffectedOut(BaseModel):
    """削除件数レスポンス"""

    affected: int = Field(..., ge=0)


class MinutesOut(BaseModel):
    """議事録レスポンス"""

    id: UUID
    meeting_series_id: UUID
    date: dt.date
    topics: List[Dict[str, Any]] = Field(default_factory=list)
    participants: List[Dict[str, Any]] = Field(default_factory=list)
    is_finalized: bool
    is_unfinalized: bool
    status: str = Field(..., description="状態: draft/finalized/reopened")
    finalized_at: Optional[dt.datetime] = None
    finalized_by: Optional[str] = None


class MeetingSeriesOut(BaseModel):
    """会議シリーズレスポンス"""

    id: UUID
    project: str
    name: str
    minutes: List[UUID] = Field(default_factory=list, description="議事録ID一覧（時系列順）")
    topics: List[Dict[str, Any]] = Field(default_factory=list)
    open_topics: List[Dict[str, Any]] = Field(default_factory=list)
