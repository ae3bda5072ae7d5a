"""Shared helpers for structured logging and MIME handling."""

__all__ = ["logging", "mime"]
