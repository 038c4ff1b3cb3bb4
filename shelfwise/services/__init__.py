"""Services - the imperative shell: load, apply core rules, write, commit.

Invariants:
    - Every state-changing operation runs inside one atomic() unit
"""
