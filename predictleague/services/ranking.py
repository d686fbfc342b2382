from __future__ import annotations

from typing import List

from sqlalchemy import and_, case, func, select
from sqlalchemy.orm import Session

from predictleague.models import MATCH_FINISHED, Match, Prediction, User
from predictleague.schemas.ranking import RankingEntryOut
from predictleague.services.scoring import CORRECT_OUTCOME_POINTS, EXACT_SCORE_POINTS


def build_global_ranking(db: Session) -> List[RankingEntryOut]:
    """Every user ordered by global points, with a breakdown of scored predictions.

    Only predictions on finished matches count towards the exact/correct/wrong
    columns; ``total_predictions`` counts all of them.
    """
    finished = Match.status == MATCH_FINISHED
    exact = func.sum(
        case((and_(finished, Prediction.points_earned == EXACT_SCORE_POINTS), 1), else_=0)
    )
    correct = func.sum(
        case((and_(finished, Prediction.points_earned == CORRECT_OUTCOME_POINTS), 1), else_=0)
    )
    wrong = func.sum(case((and_(finished, Prediction.points_earned == 0), 1), else_=0))

    rows = db.execute(
        select(
            User.id,
            User.username,
            User.points,
            func.count(Prediction.id),
            exact,
            correct,
            wrong,
        )
        .outerjoin(Prediction, Prediction.user_id == User.id)
        .outerjoin(Match, Match.id == Prediction.match_id)
        .group_by(User.id, User.username, User.points)
        .order_by(User.points.desc(), User.username.asc())
    ).all()

    return [
        RankingEntryOut(
            rank=index,
            id=user_id,
            username=username,
            points=points or 0,
            total_predictions=total or 0,
            exact_scores=exact_count or 0,
            correct_results=correct_count or 0,
            wrong_predictions=wrong_count or 0,
        )
        for index, (user_id, username, points, total, exact_count, correct_count, wrong_count)
        in enumerate(rows, start=1)
    ]
