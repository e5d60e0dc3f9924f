#!/usr/bin/env python3
"""
Database migration runner for the portal's Supabase tables.

Connects directly to the PostgreSQL database behind Supabase and applies
the SQL files in migrations/ in name order, recording each one.

Usage:
    python run_migrations.py            # Apply pending migrations
    python run_migrations.py --status   # Show migration status
    python run_migrations.py --dry-run  # Show what would run

Configuration:
    Set SUPABASE_DB_URL in your .env file (Supabase Dashboard → Settings →
    Database → Connection string → URI).
"""

import argparse
import hashlib
import sys
from pathlib import Path

import psycopg2
from psycopg2 import sql
from rich.console import Console
from rich.table import Table

from shared.config import get_settings

console = Console()

MIGRATIONS_DIR = Path(__file__).parent / "migrations"
MIGRATIONS_TABLE = "_migrations"


def connect():
    """Open a connection or exit with a readable message."""
    settings = get_settings()
    if not settings.supabase_db_url:
        console.print("[red]Error:[/red] SUPABASE_DB_URL is not set.")
        sys.exit(1)
    try:
        return psycopg2.connect(settings.supabase_db_url)
    except psycopg2.Error as e:
        console.print(f"[red]Database connection failed:[/red] {e}")
        sys.exit(1)


def ensure_migrations_table(conn) -> None:
    with conn.cursor() as cur:
        cur.execute(
            sql.SQL(
                "CREATE TABLE IF NOT EXISTS {} ("
                " name VARCHAR(255) PRIMARY KEY,"
                " checksum VARCHAR(64) NOT NULL,"
                " applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW())"
            ).format(sql.Identifier(MIGRATIONS_TABLE))
        )
    conn.commit()


def applied_migrations(conn) -> dict[str, tuple[str, object]]:
    """Map of migration name to (checksum, applied_at)."""
    with conn.cursor() as cur:
        cur.execute(
            sql.SQL("SELECT name, checksum, applied_at FROM {} ORDER BY name").format(
                sql.Identifier(MIGRATIONS_TABLE)
            )
        )
        return {name: (checksum, applied_at) for name, checksum, applied_at in cur.fetchall()}


def checksum_of(path: Path) -> str:
    return hashlib.sha256(path.read_bytes()).hexdigest()[:16]


def pending_migrations(conn) -> list[Path]:
    applied = applied_migrations(conn)
    pending = []
    for path in sorted(MIGRATIONS_DIR.glob("*.sql")):
        if path.name not in applied:
            pending.append(path)
        elif applied[path.name][0] != checksum_of(path):
            console.print(f"[yellow]Warning:[/yellow] {path.name} changed after it was applied")
    return pending


def apply_migration(conn, path: Path) -> None:
    """Run one migration file and record it in a single transaction."""
    console.print(f"[blue]Running:[/blue] {path.name}...")
    try:
        with conn.cursor() as cur:
            cur.execute(path.read_text())
            cur.execute(
                sql.SQL("INSERT INTO {} (name, checksum) VALUES (%s, %s)").format(
                    sql.Identifier(MIGRATIONS_TABLE)
                ),
                (path.name, checksum_of(path)),
            )
        conn.commit()
    except psycopg2.Error as e:
        conn.rollback()
        console.print(f"[red]✗[/red] {path.name} failed: {e}")
        raise
    console.print(f"[green]✓[/green] {path.name} applied")


def show_status(conn) -> None:
    table = Table(title="Migration Status")
    table.add_column("Migration", style="cyan")
    table.add_column("Status")
    table.add_column("Applied At")

    for name, (_, applied_at) in applied_migrations(conn).items():
        table.add_row(name, "[green]Applied[/green]", str(applied_at))
    for path in pending_migrations(conn):
        table.add_row(path.name, "[yellow]Pending[/yellow]", "")

    console.print(table)


def main():
    parser = argparse.ArgumentParser(description="Apply portal database migrations")
    parser.add_argument("--status", action="store_true", help="Show migration status and exit")
    parser.add_argument("--dry-run", action="store_true", help="List pending migrations without running them")
    args = parser.parse_args()

    conn = connect()
    try:
        ensure_migrations_table(conn)
        if args.status:
            show_status(conn)
            return

        pending = pending_migrations(conn)
        if not pending:
            console.print("[green]All migrations are up to date.[/green]")
            return

        for path in pending:
            if args.dry_run:
                console.print(f"[cyan]Would run:[/cyan] {path.name}")
            else:
                apply_migration(conn, path)
    finally:
        conn.close()


if __name__ == "__main__":
    main()
