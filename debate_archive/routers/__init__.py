"""
Router package initialization.
Exports all routers for debate_archive.main registration.
"""
from debate_archive.routers import entries, votes, verifiers

__all__ = ["entries", "votes", "verifiers"]
