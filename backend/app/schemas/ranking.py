from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class RankingRow(BaseModel):
    user_id: str
    nick_name: str
    score: float
    rank: int | None
    created_at: datetime


class RankingResponse(BaseModel):
    current_user: RankingRow
    rankings: list[RankingRow]
    total_participants: int
