"""
BoardSync

Optimistic, rollback-safe board state for a shared kanban backend.
"""
