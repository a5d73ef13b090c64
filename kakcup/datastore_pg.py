import os
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import psycopg2
from psycopg2 import pool as pg_pool
from psycopg2.extras import RealDictCursor


_POOL: Optional[pg_pool.AbstractConnectionPool] = None

YEAR_FIELDS = ("name", "status", "fishing_locked", "chug_locked", "golf_locked")
TEAM_FIELDS = ("name", "position", "kak1", "kak2", "kak3", "kak4", "locked")


def _env_int(name: str, default: Optional[int] = None) -> Optional[int]:
    val = os.environ.get(name)
    if val is None:
        return default
    try:
        return int(val)
    except ValueError:
        return default


def _connect_kwargs() -> Dict[str, Any]:
    """Common connection kwargs: connect_timeout + TCP keepalives.

    Defaults:
      - connect_timeout: 10 seconds (overridable via DB_CONNECT_TIMEOUT)
      - keepalives: enabled unless DB_KEEPALIVES is 0/false
      - DB_KEEPALIVES_IDLE/INTERVAL/COUNT applied when set
    """
    kwargs: Dict[str, Any] = {"connect_timeout": _env_int("DB_CONNECT_TIMEOUT", 10)}

    ka_env = os.environ.get("DB_KEEPALIVES")
    kwargs["keepalives"] = 0 if ka_env is not None and ka_env.lower() in ("0", "false") else 1

    for env_name, key in (
        ("DB_KEEPALIVES_IDLE", "keepalives_idle"),
        ("DB_KEEPALIVES_INTERVAL", "keepalives_interval"),
        ("DB_KEEPALIVES_COUNT", "keepalives_count"),
    ):
        val = _env_int(env_name)
        if val is not None:
            kwargs[key] = val
    return kwargs


def init_pool(minconn: int = 1, maxconn: int = 10) -> None:
    """Initialize the global connection pool from DATABASE_URL.

    Repeat calls are ignored once a pool exists.
    """
    global _POOL
    if _POOL is not None:
        return
    url = os.environ.get("DATABASE_URL")
    if not url:
        return
    _POOL = pg_pool.ThreadedConnectionPool(minconn, maxconn, dsn=url, **_connect_kwargs())


def _ping(conn) -> bool:
    try:
        with conn.cursor() as cur:
            cur.execute("SELECT 1")
        if not getattr(conn, "autocommit", False):
            conn.rollback()
        return True
    except (psycopg2.OperationalError, psycopg2.InterfaceError):
        return False


def _checkout():
    """Take a healthy connection from the pool, replacing one stale connection."""
    for _ in range(2):
        conn = _POOL.getconn()
        if _ping(conn):
            return conn
        _POOL.putconn(conn, close=True)
    raise psycopg2.OperationalError("Failed to acquire healthy DB connection after retry")


@contextmanager
def _get_conn():
    """Yield a connection that commits on success and rolls back on error.

    Uses the pool when initialized, otherwise a direct connection.
    """
    url = os.environ.get("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL not set; configure a PostgreSQL connection string")
    pooled = _POOL is not None
    conn = _checkout() if pooled else psycopg2.connect(url, **_connect_kwargs())
    try:
        yield conn
        conn.commit()
    except Exception:
        if getattr(conn, "closed", 0) == 0:
            conn.rollback()
        raise
    finally:
        if pooled:
            _POOL.putconn(conn)
        else:
            conn.close()


def _new_id() -> str:
    return str(uuid.uuid4())


def _num(val) -> Optional[float]:
    """Convert NUMERIC column values (Decimal) to float."""
    if val is None:
        return None
    return float(val)


def _fetchone(sql: str, params: tuple = ()) -> Optional[Dict[str, Any]]:
    with _get_conn() as conn, conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(sql, params)
        row = cur.fetchone()
    return dict(row) if row else None


def _fetchall(sql: str, params: tuple = ()) -> List[Dict[str, Any]]:
    with _get_conn() as conn, conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(sql, params)
        rows = cur.fetchall() or []
    return [dict(r) for r in rows]


def _execute(sql: str, params: tuple = ()) -> int:
    with _get_conn() as conn, conn.cursor() as cur:
        cur.execute(sql, params)
        return cur.rowcount


# ---------------------------------------------------------------- users

def get_user(user_id: str) -> Optional[Dict[str, Any]]:
    return _fetchone("SELECT * FROM users WHERE id = %s", (user_id,))


def get_user_by_username(username: str) -> Optional[Dict[str, Any]]:
    return _fetchone("SELECT * FROM users WHERE username = %s", (username,))


def get_user_by_email(email: str) -> Optional[Dict[str, Any]]:
    return _fetchone("SELECT * FROM users WHERE email = %s", (email,))


def create_user(user: Dict[str, Any]) -> Dict[str, Any]:
    now = datetime.now(timezone.utc)
    return _fetchone(
        """
        INSERT INTO users (id, username, email, password_hash, first_name, last_name, role, created_at, updated_at)
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
        RETURNING *
        """,
        (
            user.get("id") or _new_id(),
            user.get("username"),
            user.get("email"),
            user.get("password_hash"),
            user.get("first_name"),
            user.get("last_name"),
            user.get("role") or "user",
            now,
            now,
        ),
    )


def set_user_role(user_id: str, role: str) -> Optional[Dict[str, Any]]:
    return _fetchone(
        "UPDATE users SET role = %s, updated_at = %s WHERE id = %s RETURNING *",
        (role, datetime.now(timezone.utc), user_id),
    )


# ---------------------------------------------------------------- years

def list_years() -> List[Dict[str, Any]]:
    return _fetchall("SELECT * FROM years ORDER BY year DESC")


def get_year(year: int) -> Optional[Dict[str, Any]]:
    return _fetchone("SELECT * FROM years WHERE year = %s", (int(year),))


def get_year_by_id(year_id: str) -> Optional[Dict[str, Any]]:
    return _fetchone("SELECT * FROM years WHERE id = %s", (year_id,))


def create_year(year: Dict[str, Any]) -> Dict[str, Any]:
    return _fetchone(
        """
        INSERT INTO years (id, year, name, status)
        VALUES (%s, %s, %s, %s)
        RETURNING *
        """,
        (year.get("id") or _new_id(), int(year["year"]), year["name"], year.get("status") or "upcoming"),
    )


def update_year(year_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    cols = [k for k in YEAR_FIELDS if k in fields]
    if not cols:
        return get_year_by_id(year_id)
    assignments = ", ".join(f"{c} = %s" for c in cols)
    params = tuple(fields[c] for c in cols) + (year_id,)
    return _fetchone(f"UPDATE years SET {assignments} WHERE id = %s RETURNING *", params)


# ---------------------------------------------------------------- teams

def list_teams(year_id: str) -> List[Dict[str, Any]]:
    return _fetchall("SELECT * FROM teams WHERE year_id = %s ORDER BY position, name", (year_id,))


def get_team(team_id: str) -> Optional[Dict[str, Any]]:
    return _fetchone("SELECT * FROM teams WHERE id = %s", (team_id,))


def create_team(team: Dict[str, Any]) -> Dict[str, Any]:
    return _fetchone(
        """
        INSERT INTO teams (id, year_id, name, position, kak1, kak2, kak3, kak4, locked)
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
        RETURNING *
        """,
        (
            team.get("id") or _new_id(),
            team["year_id"],
            team["name"],
            team["position"],
            team.get("kak1"),
            team.get("kak2"),
            team.get("kak3"),
            team.get("kak4"),
            bool(team.get("locked", False)),
        ),
    )


def update_team(team_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    cols = [k for k in TEAM_FIELDS if k in fields]
    if not cols:
        return get_team(team_id)
    assignments = ", ".join(f"{c} = %s" for c in cols)
    params = tuple(fields[c] for c in cols) + (team_id,)
    return _fetchone(f"UPDATE teams SET {assignments} WHERE id = %s RETURNING *", params)


# ---------------------------------------------------------------- fish

def _fish_row(row: Dict[str, Any]) -> Dict[str, Any]:
    row["weight"] = _num(row.get("weight"))
    return row


def list_fish_weights(year_id: str) -> List[Dict[str, Any]]:
    rows = _fetchall("SELECT * FROM fish_weights WHERE year_id = %s ORDER BY team_id, id", (year_id,))
    return [_fish_row(r) for r in rows]


def create_fish_weight(entry: Dict[str, Any]) -> Dict[str, Any]:
    row = _fetchone(
        """
        INSERT INTO fish_weights (id, year_id, team_id, weight, notes)
        VALUES (%s, %s, %s, %s, %s)
        RETURNING *
        """,
        (_new_id(), entry["year_id"], entry["team_id"], entry["weight"], entry.get("notes")),
    )
    return _fish_row(row)


def delete_fish_weights_by_team(year_id: str, team_id: str) -> int:
    return _execute("DELETE FROM fish_weights WHERE year_id = %s AND team_id = %s", (year_id, team_id))


# ---------------------------------------------------------------- chug

def _chug_row(row: Dict[str, Any]) -> Dict[str, Any]:
    for key in ("chug_1", "chug_2", "average"):
        row[key] = _num(row.get(key))
    return row


def list_chug_times(year_id: str) -> List[Dict[str, Any]]:
    rows = _fetchall("SELECT * FROM chug_times WHERE year_id = %s ORDER BY team_id", (year_id,))
    return [_chug_row(r) for r in rows]


def upsert_chug_time(entry: Dict[str, Any]) -> Dict[str, Any]:
    """Insert or replace the single chug row for (year_id, team_id)."""
    row = _fetchone(
        """
        INSERT INTO chug_times (id, year_id, team_id, chug_1, chug_2, average, notes)
        VALUES (%s, %s, %s, %s, %s, %s, %s)
        ON CONFLICT (year_id, team_id) DO UPDATE SET
            chug_1 = EXCLUDED.chug_1,
            chug_2 = EXCLUDED.chug_2,
            average = EXCLUDED.average,
            notes = EXCLUDED.notes
        RETURNING *
        """,
        (
            _new_id(),
            entry["year_id"],
            entry["team_id"],
            entry["chug_1"],
            entry["chug_2"],
            entry["average"],
            entry.get("notes"),
        ),
    )
    return _chug_row(row)


def delete_chug_time(year_id: str, team_id: str) -> int:
    return _execute("DELETE FROM chug_times WHERE year_id = %s AND team_id = %s", (year_id, team_id))


# ---------------------------------------------------------------- golf

def list_golf_scores(year_id: str) -> List[Dict[str, Any]]:
    return _fetchall("SELECT * FROM golf_scores WHERE year_id = %s ORDER BY team_id", (year_id,))


def upsert_golf_score(entry: Dict[str, Any]) -> Dict[str, Any]:
    """Insert or replace the single golf row for (year_id, team_id)."""
    return _fetchone(
        """
        INSERT INTO golf_scores (id, year_id, team_id, score, notes)
        VALUES (%s, %s, %s, %s, %s)
        ON CONFLICT (year_id, team_id) DO UPDATE SET
            score = EXCLUDED.score,
            notes = EXCLUDED.notes
        RETURNING *
        """,
        (_new_id(), entry["year_id"], entry["team_id"], entry["score"], entry.get("notes")),
    )


def delete_golf_score(year_id: str, team_id: str) -> int:
    return _execute("DELETE FROM golf_scores WHERE year_id = %s AND team_id = %s", (year_id, team_id))


def clear_year_scores(year_id: str) -> Dict[str, int]:
    """Delete every fish, chug and golf row for a year in one transaction."""
    counts: Dict[str, int] = {}
    with _get_conn() as conn, conn.cursor() as cur:
        for table in ("fish_weights", "chug_times", "golf_scores"):
            cur.execute(f"DELETE FROM {table} WHERE year_id = %s", (year_id,))
            counts[table] = cur.rowcount
    return counts
