"""
Blob layout for contract artifacts.

    <UPLOAD_FOLDER>/signatures/contract_<id>_<role>.<ext>
    <UPLOAD_FOLDER>/contracts/contract_<id>.pdf

Paths depend only on contract id and role/kind, so a new upload or render
overwrites the previous file and old references keep resolving.
"""
import logging
import os
import tempfile

from flask import current_app

logger = logging.getLogger(__name__)


def upload_root(root=None):
    return root or current_app.config["UPLOAD_FOLDER"]


def signature_path(contract_id, role, extension, root=None):
    folder = os.path.join(upload_root(root), "signatures")
    return os.path.join(folder, f"contract_{contract_id}_{role}.{extension}")


def document_path(contract_id, root=None):
    folder = os.path.join(upload_root(root), "contracts")
    return os.path.join(folder, f"contract_{contract_id}.pdf")


def write_blob(path, data):
    """Write ``data`` to ``path`` through a temp file and an atomic rename."""
    folder = os.path.dirname(path)
    os.makedirs(folder, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=folder, prefix=".tmp_")
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        os.replace(tmp_path, path)
    except OSError:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise
    return path


def promote(pending_path, path):
    os.replace(pending_path, path)
    return path


def remove_blobs(*paths):
    for path in paths:
        if not path:
            continue
        try:
            if os.path.exists(path):
                os.remove(path)
        except OSError as e:
            logger.warning(f"Could not remove {path}: {str(e)}")


def read_blob(path):
    with open(path, "rb") as fh:
        return fh.read()
