"""Glitch Linux installer (state-driven, one command for every install mode).

Core design goals:
- State-driven and resumable
- Every external tool call logged
- Passphrases never logged or persisted
- Dry run plans the whole install without touching disks
"""

__all__ = []
