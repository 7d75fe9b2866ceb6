"""
Repositories package: data-access layer.

Each repository file handles all DB operations for one domain area.
Repositories do NOT handle HTTP concerns or business logic beyond
basic data integrity.

Convention:
    - One file per area (workflows.py, execution_logs.py, ...)
    - All functions accept `AsyncSession` as the first argument
    - Use `flush()` internally; the caller owns commit/rollback
"""
