"""Trigger coordinator and its in-process collaborators.

Provides:
- Settings loaded from .env
- Structured logging
- Rule file loading and notification dispatch
- A small CLI surface
"""
