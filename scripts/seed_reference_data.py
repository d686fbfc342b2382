from __future__ import annotations

import argparse

from sqlalchemy import select, update

from predictleague.core.config import get_settings
from predictleague.core.security import get_password_hash
from predictleague.db.session import SessionLocal
from predictleague.models import ROLE_ADMIN, League, Team, User

DEFAULT_SEASON = "2024-2025"

LEAGUES = [
    {"name": "Ligue 1", "country": "France", "is_cup": False},
    {"name": "Premier League", "country": "England", "is_cup": False},
    {"name": "La Liga", "country": "Spain", "is_cup": False},
    {"name": "Serie A", "country": "Italy", "is_cup": False},
    {"name": "Bundesliga", "country": "Germany", "is_cup": False},
    {"name": "UEFA Champions League", "country": None, "is_cup": True},
]

TEAMS = {
    "Ligue 1": ["PSG", "Marseille", "Lyon", "Monaco"],
    "Premier League": ["Manchester United", "Liverpool", "Arsenal", "Chelsea"],
    "La Liga": ["Real Madrid", "Barcelona", "Atletico Madrid"],
    "Serie A": ["Juventus", "AC Milan", "Inter Milan"],
    "Bundesliga": ["Bayern Munich", "Borussia Dortmund"],
    "UEFA Champions League": [
        "PSG",
        "Manchester City",
        "Real Madrid",
        "Barcelona",
        "Bayern Munich",
        "Inter Milan",
    ],
}


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed leagues, teams and an optional admin account")
    parser.add_argument("--season", type=str, default=DEFAULT_SEASON)
    parser.add_argument(
        "--update-season",
        action="store_true",
        help="Move every existing league to --season",
    )
    parser.add_argument("--admin-username", type=str, default=None)
    parser.add_argument("--admin-password", type=str, default=None)
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    settings = get_settings()
    with SessionLocal() as db:
        created_leagues = 0
        created_teams = 0
        for entry in LEAGUES:
            league = db.execute(
                select(League).where(League.name == entry["name"], League.season == args.season)
            ).scalar_one_or_none()
            if not league:
                league = League(season=args.season, active=True, **entry)
                db.add(league)
                db.flush()
                created_leagues += 1

            existing = set(
                db.execute(select(Team.name).where(Team.league_id == league.id)).scalars().all()
            )
            for team_name in TEAMS.get(entry["name"], []):
                if team_name in existing:
                    continue
                db.add(Team(name=team_name, league_id=league.id))
                created_teams += 1

        if args.update_season:
            db.execute(update(League).values(season=args.season))

        admin_note = "skipped"
        if args.admin_username and args.admin_password:
            admin = db.execute(
                select(User).where(User.username == args.admin_username)
            ).scalar_one_or_none()
            if admin:
                admin.role = ROLE_ADMIN
                admin_note = "promoted"
            else:
                db.add(
                    User(
                        username=args.admin_username,
                        password_hash=get_password_hash(args.admin_password),
                        role=ROLE_ADMIN,
                    )
                )
                admin_note = "created"

        db.commit()
        print(
            f"[seed_reference_data] env={settings.APP_ENV} season={args.season} "
            f"created_leagues={created_leagues} created_teams={created_teams} admin={admin_note}"
        )


if __name__ == "__main__":
    main()
