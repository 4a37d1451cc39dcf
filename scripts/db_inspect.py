#!/usr/bin/env python3
"""
Database inspection script for the Ostrom spot-price bridge.
Provides utilities for checking and resetting the stored meter state.
"""

import asyncio
import sys

import asyncpg

from ostrom_bridge.config import settings
from ostrom_bridge.logging_config import setup_logging


async def _connect() -> asyncpg.Connection:
    if not settings.database_url:
        raise SystemExit("OSTROM_DATABASE_URL is not set; the meter state lives in memory only")
    return await asyncpg.connect(settings.database_url)


async def show_schema():
    """Display database schema information."""
    print("Database Schema Information")
    print("=" * 60)

    conn = await _connect()
    try:
        try:
            version_info = await conn.fetchrow(
                "SELECT version, applied_at FROM schema_version ORDER BY version DESC LIMIT 1"
            )
            if version_info:
                print(f"Schema Version: {version_info['version']} (applied: {version_info['applied_at']})")
            else:
                print("Schema Version: Not found")
        except asyncpg.UndefinedTableError:
            print("Schema Version: Table not found")

        print()

        columns = await conn.fetch("""
            SELECT table_name, column_name, data_type, is_nullable
            FROM information_schema.columns
            WHERE table_name IN ('schema_version', 'meter_state')
            ORDER BY table_name, ordinal_position
        """)

        current_table = None
        for col in columns:
            if col['table_name'] != current_table:
                current_table = col['table_name']
                print(f"  - {current_table}")
            print(f"    {col['column_name']} {col['data_type']} {'' if col['is_nullable'] == 'YES' else 'NOT NULL'}".rstrip())

    finally:
        await conn.close()


async def show_meter_state():
    """Display the stored meter of every contract."""
    print("Meter State")
    print("=" * 80)

    conn = await _connect()
    try:
        rows = await conn.fetch(
            "SELECT contract_id, cumulative_kwh, last_fetched_hour, updated_at FROM meter_state ORDER BY contract_id"
        )
    finally:
        await conn.close()

    if not rows:
        print("No meter state stored yet")
        return

    print(f"{'Contract':<14} {'kWh':>14} {'Last hour (UTC)':<22} {'Updated':<22}")
    print("-" * 80)
    for row in rows:
        print(f"{row['contract_id']:<14} "
              f"{row['cumulative_kwh']:>14.3f} "
              f"{row['last_fetched_hour'].strftime('%Y-%m-%d %H:%M'):<22} "
              f"{row['updated_at'].strftime('%Y-%m-%d %H:%M:%S'):<22}")


async def reset_meter_state(contract_id: int):
    """Delete the meter of a contract; the next start runs a full backfill."""
    conn = await _connect()
    try:
        result = await conn.execute("DELETE FROM meter_state WHERE contract_id = $1", contract_id)
    finally:
        await conn.close()

    print(f"Reset contract {contract_id}: {result}")


def main():
    """Main script entry point."""
    if len(sys.argv) < 2:
        print("Database Inspection Tool for the Ostrom Price Bridge")
        print("Usage: python scripts/db_inspect.py <command> [options]")
        print("\nAvailable commands:")
        print("  schema          - Show database schema and structure")
        print("  meter           - Show the stored meter of every contract")
        print("  reset <CONTRACT> - Delete a stored meter to force a new backfill")
        return

    command = sys.argv[1].lower()
    setup_logging()

    if command == "schema":
        asyncio.run(show_schema())
    elif command == "meter":
        asyncio.run(show_meter_state())
    elif command == "reset":
        if len(sys.argv) < 3:
            print("Usage: python scripts/db_inspect.py reset <CONTRACT>")
            return
        asyncio.run(reset_meter_state(int(sys.argv[2])))
    else:
        print(f"Unknown command: {command}")
        print("Run without arguments to see available commands")


if __name__ == "__main__":
    main()
