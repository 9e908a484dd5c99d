"""Upload-key staging for parsed product files.

Rows are stored in the key-value store under an opaque upload key and
consumed once when the user confirms the upload with the secret code.
A content hash points at the same key so identical re-uploads reuse the
existing session instead of staging a duplicate.
"""

import logging
import secrets
from dataclasses import dataclass

from aios.services.kv_store import KeyValueStore
from aios.services.product_files import compute_rows_hash

logger = logging.getLogger(__name__)

UPLOAD_TTL_SECONDS = 60 * 60
UPLOAD_KEY_PREFIX = "product-upload:"
UPLOAD_HASH_PREFIX = "product-upload-hash:"


@dataclass
class StagedUpload:
    upload_key: str
    already_exists: bool


def _new_upload_key() -> str:
    return secrets.token_hex(8)


async def stage_upload(store: KeyValueStore, rows: list[list[str]]) -> StagedUpload:
    """Stage parsed rows and return the upload key.

    Args:
        store: Key-value store.
        rows: Parsed rows, header first.

    Returns:
        StagedUpload with ``already_exists=True`` when an unexpired session
        with byte-identical rows was found and reused.
    """
    content_hash = compute_rows_hash(rows)
    hash_key = f"{UPLOAD_HASH_PREFIX}{content_hash}"

    existing_key = await store.get(hash_key)
    if existing_key and await store.get(f"{UPLOAD_KEY_PREFIX}{existing_key}") is not None:
        logger.info("Reusing upload session %s for identical content", existing_key)
        return StagedUpload(upload_key=existing_key, already_exists=True)

    upload_key = _new_upload_key()
    await store.set(f"{UPLOAD_KEY_PREFIX}{upload_key}", rows, UPLOAD_TTL_SECONDS)
    await store.set(hash_key, upload_key, UPLOAD_TTL_SECONDS)
    logger.info("Staged upload session %s (%d rows)", upload_key, len(rows))
    return StagedUpload(upload_key=upload_key, already_exists=False)


async def consume_upload(store: KeyValueStore, upload_key: str) -> list[list[str]] | None:
    """Pop and return staged rows (one-shot).

    Returns None if the session expired, never existed, or was already
    consumed.
    """
    session_key = f"{UPLOAD_KEY_PREFIX}{upload_key}"
    rows = await store.get(session_key)
    if not rows or not isinstance(rows, list):
        return None
    await store.delete(session_key)
    await store.delete(f"{UPLOAD_HASH_PREFIX}{compute_rows_hash(rows)}")
    return rows
