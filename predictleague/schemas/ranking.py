from __future__ import annotations

from pydantic import BaseModel


class RankingEntryOut(BaseModel):
    rank: int
    id: int
    username: str
    points: int
    total_predictions: int
    exact_scores: int
    correct_results: int
    wrong_predictions: int
