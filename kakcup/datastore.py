from typing import Any, Dict, List, Optional

# Datastore proxy.
# Route handlers import from here; each call resolves the PostgreSQL
# implementation at call time so tests can monkeypatch datastore_pg.

from . import datastore_pg as _pg


def get_user(user_id: str) -> Optional[Dict[str, Any]]:
    return _pg.get_user(user_id)


def get_user_by_username(username: str) -> Optional[Dict[str, Any]]:
    return _pg.get_user_by_username(username)


def get_user_by_email(email: str) -> Optional[Dict[str, Any]]:
    return _pg.get_user_by_email(email)


def create_user(user: Dict[str, Any]) -> Dict[str, Any]:
    return _pg.create_user(user)


def set_user_role(user_id: str, role: str) -> Optional[Dict[str, Any]]:
    return _pg.set_user_role(user_id, role)


def list_years() -> List[Dict[str, Any]]:
    return _pg.list_years()


def get_year(year: int) -> Optional[Dict[str, Any]]:
    return _pg.get_year(year)


def get_year_by_id(year_id: str) -> Optional[Dict[str, Any]]:
    return _pg.get_year_by_id(year_id)


def find_year(key: str) -> Optional[Dict[str, Any]]:
    """Look a year up by calendar year when ``key`` is numeric, else by id."""
    try:
        year = int(key)
    except (TypeError, ValueError):
        return _pg.get_year_by_id(key)
    return _pg.get_year(year)


def create_year(year: Dict[str, Any]) -> Dict[str, Any]:
    return _pg.create_year(year)


def update_year(year_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    return _pg.update_year(year_id, fields)


def list_teams(year_id: str) -> List[Dict[str, Any]]:
    return _pg.list_teams(year_id)


def get_team(team_id: str) -> Optional[Dict[str, Any]]:
    return _pg.get_team(team_id)


def create_team(team: Dict[str, Any]) -> Dict[str, Any]:
    return _pg.create_team(team)


def update_team(team_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    return _pg.update_team(team_id, fields)


def list_fish_weights(year_id: str) -> List[Dict[str, Any]]:
    return _pg.list_fish_weights(year_id)


def create_fish_weight(entry: Dict[str, Any]) -> Dict[str, Any]:
    return _pg.create_fish_weight(entry)


def delete_fish_weights_by_team(year_id: str, team_id: str) -> int:
    return _pg.delete_fish_weights_by_team(year_id, team_id)


def list_chug_times(year_id: str) -> List[Dict[str, Any]]:
    return _pg.list_chug_times(year_id)


def upsert_chug_time(entry: Dict[str, Any]) -> Dict[str, Any]:
    return _pg.upsert_chug_time(entry)


def delete_chug_time(year_id: str, team_id: str) -> int:
    return _pg.delete_chug_time(year_id, team_id)


def list_golf_scores(year_id: str) -> List[Dict[str, Any]]:
    return _pg.list_golf_scores(year_id)


def upsert_golf_score(entry: Dict[str, Any]) -> Dict[str, Any]:
    return _pg.upsert_golf_score(entry)


def delete_golf_score(year_id: str, team_id: str) -> int:
    return _pg.delete_golf_score(year_id, team_id)


def clear_year_scores(year_id: str) -> Dict[str, int]:
    return _pg.clear_year_scores(year_id)
