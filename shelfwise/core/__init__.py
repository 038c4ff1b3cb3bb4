"""Core - pure domain rules (circulation, ledger deltas, scoring, ranking, review).

Invariants:
    - No IO, no SQLAlchemy, no FastAPI imports
    - Shell modules import core; core never imports shell
"""
