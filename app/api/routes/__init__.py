"""
API routes.

- games: game snapshots and per-game event history
- events: event log across games
- stats: aggregate counts
- sync: scheduler control and manual sync trigger
"""
