import json

from predictleague.models import ActionLog
from predictleague.services.action_log import log_action


def test_log_action_commits_row(db, session_factory, make_user):
    admin = make_user("admin")
    log_action(
        db,
        category="match",
        action="match_deleted",
        actor_user_id=admin.id,
        details={"match_id": 7},
    )

    with session_factory() as other:
        row = other.query(ActionLog).one()
    assert row.action == "match_deleted"
    assert row.actor_user_id == admin.id
    assert json.loads(row.details) == {"match_id": 7}
