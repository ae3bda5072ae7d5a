"""
Module: veloimap.__init__

What:
  Aggregate package exports for the IMAP client core of the mail application:
  configuration, protocol layer, pure data transformations and utilities.

Why:
  Entry points and the surrounding application import these names; keeping the
  surface explicit lets the internal layout change without breaking them.

Interfaces:
  - config: Pydantic schema and YAML loader for account settings.
  - core: Message normalizer, folder classifier, authentication verdicts.
  - imap: Security negotiation, authentication and session operations.
  - utils: JSON logging and MIME helpers.
  - errors, models: Error taxonomy and plain result records.
"""

__version__ = "0.1.0"

__all__ = [
    "config",
    "core",
    "errors",
    "imap",
    "models",
    "utils",
]
