"""Shelfwise - circulation, engagement ledger and monthly ranking for a lending library.

Invariants:
    - Package root contains no executable code (import side-effects prohibited)
"""
