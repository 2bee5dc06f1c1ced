"""
Per-domain repository modules for database access.

Each module holds plain functions taking a `Session` first; callers import
the module (`from boxhub.db.repositories import members as members_repo`).
"""
