#!/usr/bin/env python3
"""
Create the KAK Cup schema in PostgreSQL and seed a year and an admin account
"""
import argparse
import os
from datetime import date

import psycopg2

from kakcup import datastore_pg
from kakcup.auth import hash_password


SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS users (
        id VARCHAR(64) PRIMARY KEY,
        username VARCHAR(100) UNIQUE,
        email VARCHAR(200) UNIQUE,
        password_hash VARCHAR(255),
        first_name VARCHAR(100),
        last_name VARCHAR(100),
        role VARCHAR(20) NOT NULL DEFAULT 'user',
        created_at TIMESTAMP,
        updated_at TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS years (
        id VARCHAR(64) PRIMARY KEY,
        year INTEGER UNIQUE NOT NULL,
        name TEXT NOT NULL,
        status VARCHAR(20) NOT NULL DEFAULT 'upcoming',
        fishing_locked BOOLEAN NOT NULL DEFAULT FALSE,
        chug_locked BOOLEAN NOT NULL DEFAULT FALSE,
        golf_locked BOOLEAN NOT NULL DEFAULT FALSE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS teams (
        id VARCHAR(64) PRIMARY KEY,
        year_id VARCHAR(64) NOT NULL REFERENCES years(id) ON DELETE CASCADE,
        name TEXT NOT NULL,
        position INTEGER NOT NULL,
        kak1 TEXT,
        kak2 TEXT,
        kak3 TEXT,
        kak4 TEXT,
        locked BOOLEAN NOT NULL DEFAULT FALSE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS fish_weights (
        id VARCHAR(64) PRIMARY KEY,
        year_id VARCHAR(64) NOT NULL REFERENCES years(id) ON DELETE CASCADE,
        team_id VARCHAR(64) NOT NULL REFERENCES teams(id) ON DELETE CASCADE,
        weight NUMERIC(10, 2),
        notes TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS chug_times (
        id VARCHAR(64) PRIMARY KEY,
        year_id VARCHAR(64) NOT NULL REFERENCES years(id) ON DELETE CASCADE,
        team_id VARCHAR(64) NOT NULL REFERENCES teams(id) ON DELETE CASCADE,
        chug_1 NUMERIC(10, 3),
        chug_2 NUMERIC(10, 3),
        average NUMERIC(10, 3),
        notes TEXT,
        UNIQUE(year_id, team_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS golf_scores (
        id VARCHAR(64) PRIMARY KEY,
        year_id VARCHAR(64) NOT NULL REFERENCES years(id) ON DELETE CASCADE,
        team_id VARCHAR(64) NOT NULL REFERENCES teams(id) ON DELETE CASCADE,
        score INTEGER,
        notes TEXT,
        UNIQUE(year_id, team_id)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_teams_year ON teams(year_id)",
    "CREATE INDEX IF NOT EXISTS idx_fish_weights_year ON fish_weights(year_id)",
]


def create_tables(conn):
    """Create the database schema"""
    with conn.cursor() as cur:
        for statement in SCHEMA:
            cur.execute(statement)
    conn.commit()
    print("Database schema ready")


def seed_year(year: int):
    """Create the tournament year unless it already exists"""
    existing = datastore_pg.get_year(year)
    if existing:
        print(f"Year {year} already exists")
        return existing
    record = datastore_pg.create_year({"year": year, "name": f"KAK Cup {year}", "status": "upcoming"})
    print(f"Created year {year}")
    return record


def seed_admin(username: str, password: str, email: str):
    """Create the admin account, or promote an existing one"""
    user = datastore_pg.get_user_by_username(username) or datastore_pg.get_user_by_email(email)
    if user:
        datastore_pg.set_user_role(user["id"], "admin")
        print(f"Admin user {user['username']} already exists; role set to admin")
        return
    datastore_pg.create_user(
        {
            "username": username,
            "email": email,
            "password_hash": hash_password(password),
            "first_name": "Admin",
            "last_name": "User",
            "role": "admin",
        }
    )
    print(f"Created admin user {username}")


def main():
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--year", type=int, default=date.today().year)
    parser.add_argument("--admin-username", default=os.environ.get("ADMIN_USERNAME", "admin"))
    parser.add_argument("--admin-password", default=os.environ.get("ADMIN_PASSWORD"))
    parser.add_argument("--admin-email", default=os.environ.get("ADMIN_EMAIL", "admin@example.com"))
    args = parser.parse_args()

    database_url = os.environ.get("DATABASE_URL")
    if not database_url:
        print("ERROR: DATABASE_URL environment variable not set")
        return 1

    conn = psycopg2.connect(database_url)
    try:
        create_tables(conn)
        with conn.cursor() as cur:
            cur.execute("SELECT COUNT(*) FROM years")
            year_count = cur.fetchone()[0]
            cur.execute("SELECT COUNT(*) FROM teams")
            team_count = cur.fetchone()[0]
            cur.execute("SELECT COUNT(*) FROM users")
            user_count = cur.fetchone()[0]
    finally:
        conn.close()

    seed_year(args.year)
    if args.admin_password:
        seed_admin(args.admin_username, args.admin_password, args.admin_email)
    else:
        print("No admin password given (--admin-password or ADMIN_PASSWORD); skipping admin seed")

    print("\nSummary:")
    print(f"- {year_count} years before seeding")
    print(f"- {team_count} teams")
    print(f"- {user_count} users before seeding")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
