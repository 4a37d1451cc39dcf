"""
Ostrom spot-price bridge

A small service that connects a single Ostrom energy contract to a home
automation host.

Main components:
- Rate-limited, authenticated client for the Ostrom API
- Price analytics over today's hourly spot prices
- Cumulative smart-meter counter with backfill and hourly top-ups
- Trigger/condition catalogue evaluated on every refresh cycle
- Hourly scheduler with jitter
"""

__version__ = "1.0.0"
