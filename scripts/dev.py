#!/usr/bin/env python3
"""
Development helper scripts for the Ostrom spot-price bridge.
Provides utilities for manual API calls and trigger inspection.
"""

import asyncio
import sys

from ostrom_bridge.client import ostrom_client, rate_limiter
from ostrom_bridge.config import settings
from ostrom_bridge.database import InMemoryMeterStore
from ostrom_bridge.logging_config import setup_logging
from ostrom_bridge.services import select_contract
from ostrom_bridge.services.consumption_sync import ConsumptionSynchronizer
from ostrom_bridge.services.price_service import PriceService
from ostrom_bridge.services.triggers import CATALOGUE, TriggerEngine, build_context
from ostrom_bridge.utils.time_utils import utc_now


async def show_contracts():
    """Display the contracts linked to the configured user."""
    setup_logging()

    contracts = await ostrom_client.retrieve_contracts(settings.external_user_id)
    if not contracts:
        print("No contracts linked to this user")
        return

    print(f"{'Id':<12} {'Status':<12} {'Start':<12} {'Name'}")
    print("-" * 60)
    for contract in contracts:
        print(f"{contract.id:<12} {contract.status or '-':<12} "
              f"{contract.start_date.strftime('%Y-%m-%d'):<12} {contract.display_name}")


async def show_prices():
    """Display today's spot prices for the configured contract."""
    setup_logging()

    contract = select_contract(await ostrom_client.retrieve_contracts(settings.external_user_id), settings.contract_id)
    service = PriceService(ostrom_client, contract.address.zip if contract.address else None, settings.timezone)
    today = await service.get_today(utc_now())

    print(f"\n{'Hour':<20} {'Net ct/kWh':>12} {'Gross ct/kWh':>14}")
    print("-" * 50)
    for point in today:
        local = point.date.astimezone(service.tz)
        gross = f"{point.gross_kwh_price:>14.2f}" if point.gross_kwh_price is not None else f"{'-':>14}"
        print(f"{local.strftime('%Y-%m-%d %H:%M'):<20} {point.net_price:>12.2f} {gross}")
    print("-" * 50)
    print(f"Lowest {today.lowest():.2f}  Highest {today.highest():.2f}  Average {today.average():.2f}")


async def backfill_preview():
    """Sum the contract history without persisting anything."""
    setup_logging()

    contract = select_contract(await ostrom_client.retrieve_contracts(settings.external_user_id), settings.contract_id)
    synchronizer = ConsumptionSynchronizer(ostrom_client, InMemoryMeterStore(), settings.external_user_id, contract)
    state = await synchronizer.backfill()

    print(f"Contract {contract.id}: {state.cumulative_kwh:.2f} kWh up to {state.last_fetched_hour.isoformat()}")


async def evaluate_triggers():
    """Evaluate every argument-free rule against the current hour."""
    setup_logging()

    contract = select_contract(await ostrom_client.retrieve_contracts(settings.external_user_id), settings.contract_id)
    service = PriceService(ostrom_client, contract.address.zip if contract.address else None, settings.timezone)
    context = build_context(await service.get_today(utc_now()), utc_now(), service.tz)
    engine = TriggerEngine()

    print(f"Current price: {context.price:.2f} ct/kWh")
    for rule in CATALOGUE.values():
        if rule.arguments:
            print(f"  {rule.id:<40} (needs {', '.join(arg.name for arg in rule.arguments)})")
            continue
        print(f"  {rule.id:<40} {engine.evaluate(rule.id, {}, context)}")


def show_config():
    """Display current configuration settings."""
    print("Current Configuration:")
    print("-" * 40)
    print(f"API Host: {settings.api_host}")
    print(f"API Port: {settings.api_port}")
    print(f"Ostrom API: {settings.api_url}")
    print(f"Ostrom Auth: {settings.auth_url}")
    print(f"External User: {settings.external_user_id or '-'}")
    print(f"Contract: {settings.contract_id or 'first active'}")
    print(f"Rate Limit: {settings.rate_limit_capacity} per {settings.rate_limit_interval_seconds:.0f}s")
    print(f"Timezone: {settings.timezone}")
    print(f"Jitter: {settings.jitter_min_seconds}-{settings.jitter_max_seconds}s")
    print(f"Database: {'configured' if settings.database_url else 'in-memory'}")
    print(f"Log Level: {settings.log_level}")


async def _run(command):
    try:
        await command()
    finally:
        await rate_limiter.close()


def main():
    """Main script entry point with command selection."""
    commands = {
        "show-contracts": show_contracts,
        "show-prices": show_prices,
        "backfill-preview": backfill_preview,
        "evaluate-triggers": evaluate_triggers,
    }

    if len(sys.argv) < 2:
        print("Ostrom Price Bridge Development Scripts")
        print("Usage: python scripts/dev.py <command>")
        print("\nAvailable commands:")
        print("  show-config       - Display current configuration")
        print("  show-contracts    - List contracts of the configured user")
        print("  show-prices       - Display today's spot prices")
        print("  backfill-preview  - Sum the contract history without storing it")
        print("  evaluate-triggers - Evaluate argument-free triggers for the current hour")
        return

    command = sys.argv[1]

    if command == "show-config":
        show_config()
    elif command in commands:
        asyncio.run(_run(commands[command]))
    else:
        print(f"Unknown command: {command}")
        print("Run without arguments to see available commands")


if __name__ == "__main__":
    main()
