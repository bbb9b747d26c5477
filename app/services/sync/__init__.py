"""
Live-score sync service.

Polls the upstream feeds and records every change of every game as a
versioned event, keeping a current-state snapshot per game.

Key components:
- Adapters: Fetch and normalize each upstream feed
- Change detector: Pure diff between a snapshot and a fetched game
- Orchestrator: Run cycles, append events, upsert snapshots
"""
