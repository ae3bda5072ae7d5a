"""Folder special-use classification and label mapping."""

import pytest

from veloimap.core.folders import (
    classify_folder,
    labels_for_message,
    map_folder_to_label,
    syncable_folders,
)
from veloimap.models import Folder


def _folder(path, special_use=None, delimiter="/"):
    return Folder(
        path=path,
        raw_path=path,
        name=path.rsplit(delimiter, 1)[-1],
        delimiter=delimiter,
        special_use=special_use,
        exists=0,
        unseen=0,
    )


@pytest.mark.parametrize(
    ("path", "attributes", "expected"),
    [
        ("[Gmail]/Trash", (), "\\Trash"),
        ("Sent Items", (), "\\Sent"),
        ("JUNK E-MAIL", (), "\\Junk"),
        ("[Gmail]/All Mail", (), "\\Archive"),
        ("Boîte d'envoi", (b"\\Sent",), "\\Sent"),
        ("Everything", (b"\\HasNoChildren", b"\\all"), "\\All"),
        ("Important", ("\\Flagged",), "\\Flagged"),
        ("Trash", (b"\\Junk",), "\\Junk"),
        ("Projects/Trash", (), None),
        ("Receipts", (b"\\HasNoChildren",), None),
    ],
)
def test_classify_folder(path, attributes, expected):
    assert classify_folder(path, attributes) == expected


def test_classification_is_idempotent():
    first = classify_folder("[Gmail]/Trash", ())
    assert first == classify_folder("[Gmail]/Trash", ()) == "\\Trash"


def test_special_use_maps_to_system_label():
    label = map_folder_to_label(_folder("Corbeille", special_use="\\Trash"))

    assert (label.label_id, label.label_name, label.type) == ("TRASH", "Trash", "system")


@pytest.mark.parametrize(
    ("path", "label_id"),
    [
        ("INBOX", "INBOX"),
        ("Brouillons", "DRAFT"),
        ("[Gmail]/Starred", "STARRED"),
        ("[Gmail]/Important", "IMPORTANT"),
        ("Archives/Bin", "TRASH"),
    ],
)
def test_names_map_to_system_labels(path, label_id):
    assert map_folder_to_label(_folder(path)).label_id == label_id


def test_other_folders_become_user_labels():
    label = map_folder_to_label(_folder("Clients/Acme"))

    assert label.to_dict() == {"label_id": "folder-Clients/Acme", "label_name": "Acme", "type": "user"}


def test_labels_for_message_reflect_flags():
    label = map_folder_to_label(_folder("INBOX"))

    assert labels_for_message(label, is_read=False, is_starred=True, is_draft=False) == ["INBOX", "UNREAD", "STARRED"]
    assert labels_for_message(label, is_read=True, is_starred=False, is_draft=True) == ["INBOX", "DRAFT"]


def test_syncable_folders_drop_provider_containers():
    folders = [_folder("INBOX"), _folder("[Gmail]"), _folder("[Google Mail]"), _folder("[Gmail]/Sent Mail")]

    assert [folder.path for folder in syncable_folders(folders)] == ["INBOX", "[Gmail]/Sent Mail"]
