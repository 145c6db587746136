from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import InvalidArgument
from app.models.quiz import OVERALL_SCOPE, Category, QuizBestScore, QuizResult
from app.models.user import User

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoreEntry:
    user_id: uuid.UUID
    score: float
    created_at: datetime
    nick_name: str = ""
    result_id: uuid.UUID | None = None


def parse_category(value: str) -> Category:
    try:
        return Category(str(value or "").strip())
    except ValueError as e:
        raise InvalidArgument("invalid category") from e


def dedupe_best(entries: Iterable[ScoreEntry]) -> list[ScoreEntry]:
    """Keep one entry per user: the highest score, the earliest one among equal scores."""

    best: dict[uuid.UUID, ScoreEntry] = {}
    for e in entries:
        cur = best.get(e.user_id)
        if cur is None or e.score > cur.score or (e.score == cur.score and e.created_at < cur.created_at):
            best[e.user_id] = e
    return list(best.values())


def dense_rank(entries: Iterable[ScoreEntry]) -> list[tuple[ScoreEntry, int]]:
    """Rank by score desc; equal scores share the rank of the first of them (1, 2, 2, 4)."""

    ordered = sorted(entries, key=lambda e: (-e.score, e.created_at))
    out: list[tuple[ScoreEntry, int]] = []
    for i, e in enumerate(ordered, start=1):
        if out and out[-1][0].score == e.score:
            rank = out[-1][1]
        else:
            rank = i
        out.append((e, rank))
    return out


def _row(entry: ScoreEntry, rank: int | None) -> dict[str, Any]:
    return {
        "user_id": str(entry.user_id),
        "nick_name": entry.nick_name,
        "score": float(entry.score),
        "rank": rank,
        "created_at": entry.created_at,
    }


def _bundle(ranked: list[tuple[ScoreEntry, int]], *, user_id: uuid.UUID, top_n: int) -> dict[str, Any]:
    current = next(((e, r) for e, r in ranked if e.user_id == user_id), None)
    if current is None:
        current_row = _row(ScoreEntry(user_id=user_id, score=0.0, created_at=datetime.now(timezone.utc)), None)
    else:
        current_row = _row(*current)

    return {
        "current_user": current_row,
        "rankings": [_row(e, r) for e, r in ranked[:top_n]],
        "total_participants": len(ranked),
    }


def _result_entries(result: QuizResult) -> list[tuple[str, ScoreEntry]]:
    """Per-scope score entries a single result contributes to the best-score index."""

    out = [
        (
            OVERALL_SCOPE,
            ScoreEntry(user_id=result.user_id, score=float(result.overall_score), created_at=result.created_at, result_id=result.id),
        )
    ]
    for category, stats in (result.category_analysis or {}).items():
        out.append(
            (
                str(category),
                ScoreEntry(
                    user_id=result.user_id,
                    score=float((stats or {}).get("score") or 0.0),
                    created_at=result.created_at,
                    result_id=result.id,
                ),
            )
        )
    return out


class RankingService:
    """Leaderboards served from the per-user best-score index.

    The index holds one row per (user, scope) where scope is a category or "overall".
    It is maintained incrementally by record_result and can be rebuilt from quiz_results.
    """

    def __init__(self, db: Session, *, top_n: int | None = None):
        self.db = db
        self.top_n = int(top_n if top_n is not None else settings.ranking_top_n)

    def _lock_row(self, user_id: uuid.UUID, scope: str) -> QuizBestScore | None:
        return self.db.scalar(
            select(QuizBestScore)
            .where(QuizBestScore.user_id == user_id, QuizBestScore.scope == scope)
            .with_for_update()
        )

    def record_result(self, result: QuizResult) -> None:
        """Fold a freshly flushed result into the index. Only strictly higher scores replace a row."""

        for scope, entry in _result_entries(result):
            row = self._lock_row(entry.user_id, scope)
            if row is None:
                try:
                    with self.db.begin_nested():
                        self.db.add(
                            QuizBestScore(
                                user_id=entry.user_id,
                                scope=scope,
                                score=entry.score,
                                result_id=entry.result_id,
                                achieved_at=entry.created_at,
                            )
                        )
                    continue
                except IntegrityError:
                    # Another result for this user created the row first; compare against it instead.
                    log.info("best-score row created concurrently: user_id=%s scope=%s", entry.user_id, scope)
                    row = self._lock_row(entry.user_id, scope)
                    if row is None:
                        raise

            if entry.score > row.score:
                row.score = entry.score
                row.result_id = entry.result_id
                row.achieved_at = entry.created_at

    def rebuild_best_scores(self) -> int:
        """Recompute the whole index from quiz_results. Returns the number of index rows written."""

        self.db.execute(delete(QuizBestScore))

        by_scope: dict[str, list[ScoreEntry]] = {}
        for result in self.db.scalars(select(QuizResult).order_by(QuizResult.created_at.asc())):
            for scope, entry in _result_entries(result):
                by_scope.setdefault(scope, []).append(entry)

        written = 0
        for scope, entries in by_scope.items():
            for e in dedupe_best(entries):
                self.db.add(
                    QuizBestScore(
                        user_id=e.user_id,
                        scope=scope,
                        score=e.score,
                        result_id=e.result_id,
                        achieved_at=e.created_at,
                    )
                )
                written += 1

        self.db.commit()
        log.info("best-score index rebuilt: rows=%s scopes=%s", written, len(by_scope))
        return written

    def _ranked_scope(self, scope: str, *, positive_only: bool) -> list[tuple[ScoreEntry, int]]:
        stmt = (
            select(QuizBestScore, User.nick_name)
            .join(User, User.id == QuizBestScore.user_id)
            .where(QuizBestScore.scope == scope)
            .order_by(QuizBestScore.score.desc(), QuizBestScore.achieved_at.asc())
        )
        if positive_only:
            stmt = stmt.where(QuizBestScore.score > 0)

        entries = [
            ScoreEntry(
                user_id=row.user_id,
                score=float(row.score),
                created_at=row.achieved_at,
                nick_name=nick_name or "",
                result_id=row.result_id,
            )
            for row, nick_name in self.db.execute(stmt).all()
        ]
        return dense_rank(entries)

    def category_ranking(self, category: str, user_id: uuid.UUID) -> dict[str, Any]:
        cat = parse_category(category)
        # A user with no correct answer in the category is not ranked at all.
        ranked = self._ranked_scope(cat.value, positive_only=True)
        return _bundle(ranked, user_id=user_id, top_n=self.top_n)

    def overall_ranking(self, user_id: uuid.UUID) -> dict[str, Any]:
        ranked = self._ranked_scope(OVERALL_SCOPE, positive_only=False)
        return _bundle(ranked, user_id=user_id, top_n=self.top_n)

    def best_scores(self, user_id: uuid.UUID) -> dict[str, float]:
        rows = self.db.scalars(
            select(QuizBestScore).where(QuizBestScore.user_id == user_id, QuizBestScore.scope != OVERALL_SCOPE)
        ).all()
        return {row.scope: float(row.score) for row in rows}
