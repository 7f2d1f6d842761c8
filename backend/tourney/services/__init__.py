"""
Bracket and scheduling engine.

Modules here work on plain records and dataclasses (registration dicts,
stored group dicts, schedule documents) and never touch the database or
HTTP layer; routes load rows, call in, and persist what comes back.

Pipeline: entrant_resolver -> group_allocator -> round_robin ->
seed_resolver -> elimination -> match_catalog -> schedule_grid ->
schedule_persistence.
"""
