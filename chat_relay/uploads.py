import contextlib
import logging
from collections.abc import AsyncIterator
from pathlib import Path
from uuid import uuid4

from fastapi import UploadFile

from chat_relay.errors import UploadTooLargeError

logger = logging.getLogger("chat_relay.uploads")

_CHUNK_SIZE = 1024 * 1024


@contextlib.asynccontextmanager
async def staged_upload(
    upload: UploadFile,
    directory: Path,
    max_bytes: int,
) -> AsyncIterator[Path]:
    """Write ``upload`` to a unique file under ``directory`` for the scope.

    The file is removed when the scope exits, whether the body returned,
    raised, or the size cap was hit while copying.
    """
    directory.mkdir(parents=True, exist_ok=True)
    suffix = Path(upload.filename or "").suffix.lower()
    destination = directory / f"{uuid4().hex}{suffix}"
    try:
        written = 0
        with destination.open("wb") as handle:
            while chunk := await upload.read(_CHUNK_SIZE):
                written += len(chunk)
                if written > max_bytes:
                    raise UploadTooLargeError(
                        f"File exceeds the {max_bytes} byte upload limit."
                    )
                handle.write(chunk)
        yield destination
    finally:
        destination.unlink(missing_ok=True)
        logger.debug("staged_upload_removed", extra={"path": str(destination)})
