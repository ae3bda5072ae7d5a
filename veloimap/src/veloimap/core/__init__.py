"""Pure data transformations: message normalisation and folder roles.

Nothing in this package performs network IO; every function maps server data
to :mod:`veloimap.models` records.
"""

from .authresults import AuthResult, AuthVerdict, parse_authentication_results, verdict_for_message
from .folders import (
    FolderLabel,
    classify_folder,
    labels_for_message,
    map_folder_to_label,
    syncable_folders,
)
from .normalizer import normalize_message

__all__ = [
    "AuthResult",
    "AuthVerdict",
    "FolderLabel",
    "classify_folder",
    "labels_for_message",
    "map_folder_to_label",
    "normalize_message",
    "parse_authentication_results",
    "syncable_folders",
    "verdict_for_message",
]
