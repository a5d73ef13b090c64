from flask import Blueprint, current_app, jsonify, request
import math
import os
import time

from .auth import admin_required
from .scoring import InvalidInput, reduce_chug_observations
from .standings import compute_year_standings, leader
from .datastore import (
    list_years as ds_list_years,
    find_year as ds_find_year,
    get_year_by_id as ds_get_year_by_id,
    update_year as ds_update_year,
    list_teams as ds_list_teams,
    get_team as ds_get_team,
    create_team as ds_create_team,
    update_team as ds_update_team,
    list_fish_weights as ds_list_fish_weights,
    create_fish_weight as ds_create_fish_weight,
    delete_fish_weights_by_team as ds_delete_fish_weights_by_team,
    list_chug_times as ds_list_chug_times,
    upsert_chug_time as ds_upsert_chug_time,
    delete_chug_time as ds_delete_chug_time,
    list_golf_scores as ds_list_golf_scores,
    upsert_golf_score as ds_upsert_golf_score,
    delete_golf_score as ds_delete_golf_score,
    clear_year_scores as ds_clear_year_scores,
)


bp = Blueprint('main', __name__)

YEAR_STATUSES = ('upcoming', 'active', 'completed')
LOCK_FIELDS = ('fishing_locked', 'chug_locked', 'golf_locked')

# Simple in-process cache for read endpoints; writes invalidate their keys
_CACHE: dict[str, tuple[float, object]] = {}
_CACHE_TTL = int(os.environ.get('CACHE_TTL_SECONDS', '3600'))  # seconds


def _key_teams(year_id: str) -> str:
    return f'teams:{year_id}'


def _key_fish(year_id: str) -> str:
    return f'fw:{year_id}'


def _key_chug(year_id: str) -> str:
    return f'ct:{year_id}'


def _key_golf(year_id: str) -> str:
    return f'gs:{year_id}'


def _key_standings(year_id: str) -> str:
    return f'standings:{year_id}'


def _cached(key: str, loader):
    entry = _CACHE.get(key)
    if entry:
        exp, value = entry
        if exp >= time.time():
            return value
        _CACHE.pop(key, None)
    value = loader()
    _CACHE[key] = (time.time() + _CACHE_TTL, value)
    return value


def _invalidate(*keys: str) -> None:
    for key in keys:
        _CACHE.pop(key, None)


def _cache_clear_all() -> None:
    _CACHE.clear()


def _error(message: str, status: int):
    return {'error': message}, status


def _json_body():
    """Return the request's JSON object, or None when the body is not one."""
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        return None
    return payload


def _text(val):
    """Stripped string or None; raises ValueError for non-string JSON."""
    if val is None:
        return None
    if not isinstance(val, str):
        raise ValueError(f"Expected a string, got {val!r}")
    return val.strip() or None


def _parse_number(val) -> float:
    """Coerce a JSON number or numeric string to float."""
    if isinstance(val, bool) or not isinstance(val, (int, float, str)):
        raise ValueError(f"Expected a number, got {val!r}")
    num = float(val)
    if not math.isfinite(num):
        raise ValueError(f"Expected a finite number, got {val!r}")
    return num


def _parse_int(val) -> int:
    if isinstance(val, bool) or not isinstance(val, (int, float, str)):
        raise ValueError(f"Expected an integer, got {val!r}")
    if isinstance(val, float):
        if not val.is_integer():
            raise ValueError(f"Expected an integer, got {val!r}")
        return int(val)
    return int(str(val).strip())


def _load_year_team(year_id: str, team_id: str):
    """Return (year, team, error_response) for a team scoped to a year."""
    year = ds_get_year_by_id(year_id)
    if not year:
        return None, None, _error('Year not found', 404)
    team = ds_get_team(team_id) if team_id and isinstance(team_id, str) else None
    if not team or team.get('year_id') != year_id:
        return year, None, _error('Team not found', 404)
    return year, team, None


@bp.route('/health/db')
def health_db():
    """Database connectivity health check.

    Always returns HTTP 200 with a JSON body describing connection status.
    """
    url = os.environ.get('DATABASE_URL')
    if not url:
        return {
            'connected': False,
            'status': 'no_database_url',
            'message': 'DATABASE_URL is not set.',
        }
    try:
        import psycopg2  # type: ignore
        with psycopg2.connect(url, connect_timeout=5) as conn:
            with conn.cursor() as cur:
                cur.execute('SELECT current_user, current_database(), version()')
                user, db, ver = cur.fetchone()
        return {
            'connected': True,
            'status': 'ok',
            'user': user,
            'database': db,
            'server_version': (ver or '').split('\n')[0],
        }
    except Exception as e:  # pragma: no cover - best-effort health output
        return {
            'connected': False,
            'status': 'error',
            'error': str(e),
        }


# ------------------------------------------------------------------ years

@bp.route('/api/years')
def years():
    try:
        return jsonify(_cached('years', ds_list_years))
    except Exception:
        current_app.logger.exception("Failed to fetch years")
        return _error('Failed to fetch years', 500)


@bp.route('/api/years/<year>')
def year_detail(year):
    """Fetch a year by calendar year (``/api/years/2025``) or by id."""
    try:
        record = ds_find_year(year)
    except Exception:
        current_app.logger.exception("Failed to fetch year %s", year)
        return _error('Failed to fetch year', 500)
    if not record:
        return _error('Year not found', 404)
    return record


@bp.route('/api/years/<year_id>', methods=['PATCH'])
@admin_required
def update_year(year_id):
    payload = _json_body()
    if payload is None:
        return _error('Request body must be a JSON object', 400)
    fields = {}
    if 'name' in payload:
        try:
            name = _text(payload.get('name'))
        except ValueError:
            return _error('Year name must be a string', 400)
        if not name:
            return _error('Year name cannot be empty', 400)
        fields['name'] = name
    if 'status' in payload:
        status = payload.get('status')
        if not isinstance(status, str) or status not in YEAR_STATUSES:
            return _error(f"Invalid status '{status}'. Expected one of: {', '.join(YEAR_STATUSES)}", 400)
        fields['status'] = status
    for lock in LOCK_FIELDS:
        if lock in payload:
            fields[lock] = bool(payload.get(lock))
    try:
        if not ds_get_year_by_id(year_id):
            return _error('Year not found', 404)
        record = ds_update_year(year_id, fields)
    except Exception:
        current_app.logger.exception("Failed to update year %s", year_id)
        return _error('Failed to update year', 500)
    current_app.logger.info("Updated year %s fields=%s", year_id, sorted(fields))
    _invalidate('years')
    return record


# ------------------------------------------------------------------ teams

@bp.route('/api/years/<year_id>/teams')
def teams(year_id):
    try:
        return jsonify(_cached(_key_teams(year_id), lambda: ds_list_teams(year_id)))
    except Exception:
        current_app.logger.exception("Failed to fetch teams for %s", year_id)
        return _error('Failed to fetch teams', 500)


def _team_fields(payload: dict, partial: bool) -> dict:
    """Validate a team payload; raises ValueError with a client message."""
    fields = {}
    if 'name' in payload or not partial:
        try:
            name = _text(payload.get('name'))
        except ValueError:
            raise ValueError('Team name must be a string')
        if not name:
            raise ValueError('Team name is required')
        fields['name'] = name
    if 'position' in payload:
        try:
            position = _parse_int(payload.get('position'))
        except ValueError:
            raise ValueError('Team position must be an integer')
        if position < 1:
            raise ValueError('Team position must be 1 or greater')
        fields['position'] = position
    for member in ('kak1', 'kak2', 'kak3', 'kak4'):
        if member in payload:
            try:
                fields[member] = _text(payload.get(member))
            except ValueError:
                raise ValueError(f'Team member {member} must be a string')
    if 'locked' in payload:
        fields['locked'] = bool(payload.get('locked'))
    return fields


@bp.route('/api/years/<year_id>/teams', methods=['POST'])
@admin_required
def create_team(year_id):
    payload = _json_body()
    if payload is None:
        return _error('Request body must be a JSON object', 400)
    try:
        fields = _team_fields(payload, partial=False)
    except ValueError as e:
        return _error(str(e), 400)
    try:
        if not ds_get_year_by_id(year_id):
            return _error('Year not found', 404)
        if 'position' not in fields:
            existing = ds_list_teams(year_id)
            fields['position'] = max((t.get('position') or 0 for t in existing), default=0) + 1
        fields['year_id'] = year_id
        team = ds_create_team(fields)
    except Exception:
        current_app.logger.exception("Failed to create team in %s", year_id)
        return _error('Failed to create team', 500)
    current_app.logger.info("Created team %s (%s) in year %s", team.get('id'), team.get('name'), year_id)
    _invalidate(_key_teams(year_id), _key_standings(year_id))
    return team, 201


@bp.route('/api/teams/<team_id>', methods=['PUT'])
@admin_required
def update_team(team_id):
    payload = _json_body()
    if payload is None:
        return _error('Request body must be a JSON object', 400)
    try:
        fields = _team_fields(payload, partial=True)
    except ValueError as e:
        return _error(str(e), 400)
    try:
        if not ds_get_team(team_id):
            return _error('Team not found', 404)
        team = ds_update_team(team_id, fields)
    except Exception:
        current_app.logger.exception("Failed to update team %s", team_id)
        return _error('Failed to update team', 500)
    year_id = team.get('year_id')
    _invalidate(_key_teams(year_id), _key_standings(year_id))
    return team


# ------------------------------------------------------------------ fish

@bp.route('/api/years/<year_id>/fish-weights')
def fish_weights(year_id):
    try:
        return jsonify(_cached(_key_fish(year_id), lambda: ds_list_fish_weights(year_id)))
    except Exception:
        current_app.logger.exception("Failed to fetch fish weights for %s", year_id)
        return _error('Failed to fetch fish weights', 500)


@bp.route('/api/years/<year_id>/fish-weights', methods=['POST'])
@admin_required
def add_fish_weight(year_id):
    payload = _json_body()
    if payload is None:
        return _error('Request body must be a JSON object', 400)
    try:
        weight = _parse_number(payload.get('weight'))
    except ValueError:
        return _error('Fish weight must be a number', 400)
    try:
        notes = _text(payload.get('notes'))
    except ValueError:
        return _error('Notes must be a string', 400)
    try:
        year, team, err = _load_year_team(year_id, payload.get('team_id'))
        if err and not year:
            return err
        if year.get('fishing_locked'):
            return _error('Fishing competition is locked. No more weights can be added.', 403)
        if err:
            return err
        entry = ds_create_fish_weight(
            {'year_id': year_id, 'team_id': team['id'], 'weight': weight, 'notes': notes}
        )
    except Exception:
        current_app.logger.exception("Failed to create fish weight in %s", year_id)
        return _error('Failed to create fish weight', 500)
    current_app.logger.info("Recorded fish weight %.2f for team %s", weight, team['id'])
    _invalidate(_key_fish(year_id), _key_standings(year_id))
    return entry, 201


@bp.route('/api/years/<year_id>/teams/<team_id>/fish-weights', methods=['DELETE'])
@admin_required
def delete_fish_weights(year_id, team_id):
    try:
        year = ds_get_year_by_id(year_id)
        if not year:
            return _error('Year not found', 404)
        if year.get('fishing_locked'):
            return _error('Fishing competition is locked. Cannot delete weights.', 403)
        removed = ds_delete_fish_weights_by_team(year_id, team_id)
    except Exception:
        current_app.logger.exception("Failed to delete fish weights for %s", team_id)
        return _error('Failed to delete fish weights', 500)
    current_app.logger.info("Deleted %s fish weights for team %s", removed, team_id)
    _invalidate(_key_fish(year_id), _key_standings(year_id))
    return {'message': 'Fish weights deleted successfully'}


# ------------------------------------------------------------------ chug

@bp.route('/api/years/<year_id>/chug-times')
def chug_times(year_id):
    try:
        return jsonify(_cached(_key_chug(year_id), lambda: ds_list_chug_times(year_id)))
    except Exception:
        current_app.logger.exception("Failed to fetch chug times for %s", year_id)
        return _error('Failed to fetch chug times', 500)


@bp.route('/api/years/<year_id>/chug-times', methods=['POST'])
@admin_required
def save_chug_time(year_id):
    payload = _json_body()
    if payload is None:
        return _error('Request body must be a JSON object', 400)
    try:
        chug_1 = _parse_number(payload.get('chug_1'))
        chug_2 = _parse_number(payload.get('chug_2'))
    except ValueError:
        return _error('Chug times must be numbers', 400)
    try:
        notes = _text(payload.get('notes'))
    except ValueError:
        return _error('Notes must be a string', 400)
    try:
        average = reduce_chug_observations(chug_1, chug_2)
    except InvalidInput as e:
        return _error(str(e), 400)
    try:
        year, team, err = _load_year_team(year_id, payload.get('team_id'))
        if err and not year:
            return err
        if year.get('chug_locked'):
            return _error('Chug competition is locked. No more times can be added.', 403)
        if err:
            return err
        entry = ds_upsert_chug_time(
            {
                'year_id': year_id,
                'team_id': team['id'],
                'chug_1': chug_1,
                'chug_2': chug_2,
                'average': average,
                'notes': notes,
            }
        )
    except Exception:
        current_app.logger.exception("Failed to save chug time in %s", year_id)
        return _error('Failed to create chug time', 500)
    current_app.logger.info("Recorded chug average %.3f for team %s", average, team['id'])
    _invalidate(_key_chug(year_id), _key_standings(year_id))
    return entry, 201


@bp.route('/api/years/<year_id>/teams/<team_id>/chug-times', methods=['DELETE'])
@admin_required
def delete_chug_time(year_id, team_id):
    try:
        year = ds_get_year_by_id(year_id)
        if not year:
            return _error('Year not found', 404)
        if year.get('chug_locked'):
            return _error('Chug competition is locked. Cannot delete times.', 403)
        ds_delete_chug_time(year_id, team_id)
    except Exception:
        current_app.logger.exception("Failed to delete chug time for %s", team_id)
        return _error('Failed to delete chug time', 500)
    _invalidate(_key_chug(year_id), _key_standings(year_id))
    return {'message': 'Chug time deleted successfully'}


# ------------------------------------------------------------------ golf

@bp.route('/api/years/<year_id>/golf-scores')
def golf_scores(year_id):
    try:
        return jsonify(_cached(_key_golf(year_id), lambda: ds_list_golf_scores(year_id)))
    except Exception:
        current_app.logger.exception("Failed to fetch golf scores for %s", year_id)
        return _error('Failed to fetch golf scores', 500)


@bp.route('/api/years/<year_id>/golf-scores', methods=['POST'])
@admin_required
def save_golf_score(year_id):
    payload = _json_body()
    if payload is None:
        return _error('Request body must be a JSON object', 400)
    try:
        score = _parse_int(payload.get('score'))
    except ValueError:
        return _error('Golf score must be an integer', 400)
    try:
        notes = _text(payload.get('notes'))
    except ValueError:
        return _error('Notes must be a string', 400)
    try:
        year, team, err = _load_year_team(year_id, payload.get('team_id'))
        if err and not year:
            return err
        if year.get('golf_locked'):
            return _error('Golf competition is locked. No more scores can be added.', 403)
        if err:
            return err
        entry = ds_upsert_golf_score(
            {'year_id': year_id, 'team_id': team['id'], 'score': score, 'notes': notes}
        )
    except Exception:
        current_app.logger.exception("Failed to save golf score in %s", year_id)
        return _error('Failed to create golf score', 500)
    current_app.logger.info("Recorded golf score %+d for team %s", score, team['id'])
    _invalidate(_key_golf(year_id), _key_standings(year_id))
    return entry, 201


@bp.route('/api/years/<year_id>/teams/<team_id>/golf-scores', methods=['DELETE'])
@admin_required
def delete_golf_score(year_id, team_id):
    try:
        year = ds_get_year_by_id(year_id)
        if not year:
            return _error('Year not found', 404)
        if year.get('golf_locked'):
            return _error('Golf competition is locked. Cannot delete scores.', 403)
        ds_delete_golf_score(year_id, team_id)
    except Exception:
        current_app.logger.exception("Failed to delete golf score for %s", team_id)
        return _error('Failed to delete golf score', 500)
    _invalidate(_key_golf(year_id), _key_standings(year_id))
    return {'message': 'Golf score deleted successfully'}


@bp.route('/api/years/<year_id>/scores', methods=['DELETE'])
@admin_required
def clear_scores(year_id):
    """Remove every fish, chug and golf result recorded for a year."""
    try:
        if not ds_get_year_by_id(year_id):
            return _error('Year not found', 404)
        counts = ds_clear_year_scores(year_id)
    except Exception:
        current_app.logger.exception("Failed to clear scores for %s", year_id)
        return _error('Failed to clear scores', 500)
    current_app.logger.info("Cleared scores for year %s counts=%s", year_id, counts)
    _invalidate(
        _key_fish(year_id),
        _key_chug(year_id),
        _key_golf(year_id),
        _key_standings(year_id),
        'years',
    )
    return {'message': 'All scores cleared for year'}


# ------------------------------------------------------------------ standings

def _year_standings(year_id: str) -> dict:
    result = compute_year_standings(
        ds_list_teams(year_id),
        ds_list_fish_weights(year_id),
        ds_list_chug_times(year_id),
        ds_list_golf_scores(year_id),
    )
    top = leader(result['standings'])
    result['leader'] = top['team_id'] if top else None
    return result


@bp.route('/api/years/<year_id>/standings')
def standings(year_id):
    try:
        if not ds_get_year_by_id(year_id):
            return _error('Year not found', 404)
        return _cached(_key_standings(year_id), lambda: _year_standings(year_id))
    except Exception:
        current_app.logger.exception("Failed to compute standings for %s", year_id)
        return _error('Failed to compute standings', 500)
