"""Test package marker.

``tests/conftest.py`` puts ``veloimap/src`` on ``sys.path``; the unit suite
shares its IMAP fake through ``tests/unit/fakes.py``.
"""
