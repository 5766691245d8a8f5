"""
Prefect flows for CivicTrack orchestration.

This package contains flow definitions for:
- Periodic sync of recently updated bills
- On-demand refresh of a single bill

Responsibility: Define orchestration workflows using Prefect
"""
