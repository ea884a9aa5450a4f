import logging
import uuid

from flask import current_app
from werkzeug.utils import secure_filename

from ..clock import get_clock
from ..errors import AccessDenied, PayloadTooLarge, UnsupportedMediaType, ValidationError
from ..models.user import ADMIN, LECTURER, MANAGEMENT, SUPERADMIN
from . import contracts, storage
from .listing import ensure_can_access

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {'png', 'jpg', 'jpeg', 'gif', 'webp'}

_MAGIC = (
    (b'\x89PNG\r\n\x1a\n', 'png'),
    (b'\xff\xd8\xff', 'jpg'),
    (b'GIF87a', 'gif'),
    (b'GIF89a', 'gif'),
)


def allowed_file(filename):
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in ALLOWED_EXTENSIONS


def sniff_image_type(data):
    for magic, kind in _MAGIC:
        if data.startswith(magic):
            return kind
    if len(data) >= 12 and data[:4] == b'RIFF' and data[8:12] == b'WEBP':
        return 'webp'
    return None


def check_signer(caller, role):
    if caller.has_role(SUPERADMIN, ADMIN):
        return
    if caller.has_role(LECTURER) and role == 'lecturer':
        return
    if caller.has_role(MANAGEMENT) and role == 'management':
        return
    raise AccessDenied(f"Your role cannot sign as {role}")


def read_upload(upload):
    """Return (bytes, extension) for an uploaded signature image."""
    if upload is None:
        raise ValidationError("No file uploaded", errors={'file': "is required"})
    filename = secure_filename(upload.filename or '')
    max_bytes = current_app.config.get('SIGNATURE_MAX_BYTES', 10 * 1024 * 1024)
    data = upload.read(max_bytes + 1)
    if not data:
        raise ValidationError("Uploaded file is empty", errors={'file': "must not be empty"})
    if len(data) > max_bytes:
        raise PayloadTooLarge(f"Signature image exceeds {max_bytes} bytes")
    kind = sniff_image_type(data)
    if kind is None or (filename and not allowed_file(filename)):
        raise UnsupportedMediaType("Signature must be a PNG, JPEG, GIF or WEBP image")
    return data, kind


def submit_signature(contract_id, role, upload, caller):
    role = (role or '').strip().lower()
    if role not in contracts.SIGNER_ROLES:
        raise ValidationError("Invalid signer role", errors={'who': "must be 'lecturer' or 'management'"})

    contract = contracts.get_contract(contract_id)
    ensure_can_access(caller, contract)
    check_signer(caller, role)
    data, kind = read_upload(upload)

    # Guard before touching the blob; the authoritative check runs under lock.
    contracts.next_status(contract.status, role)

    previous = getattr(contract, f"{role}_signature_path")
    path = storage.signature_path(contract.id, role, kind)
    pending = storage.write_blob(f"{path}.{uuid.uuid4().hex}.pending", data)
    try:
        signed = contracts.apply_signature(contract.id, role, path, get_clock().now())
    except Exception:
        storage.remove_blobs(pending)
        raise
    storage.promote(pending, path)
    if previous and previous != path:
        storage.remove_blobs(previous)
    logger.info(f"Signature stored for contract {contract_id} ({role}) by user {caller.id}")
    return signed
