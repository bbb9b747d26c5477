"""
Services module for the live-score tracker.

This module organizes services into:
- sync: Feed adapters, change detection and the sync orchestrator
- query_service: Read-only views over snapshots and the event log
"""
