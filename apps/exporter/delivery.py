"""
Export Delivery

Writes the rendered report either to local disk (ENV=local) or to the SFTP
target configured through SFTP_* settings.
"""

import logging
from pathlib import Path
from typing import Iterable

from utils.config import Settings
from utils.logging import log_duration
from utils.sftp import upload_stream

logger = logging.getLogger(__name__)


def save_local(chunks: Iterable[bytes], file_name: str, directory: str = ".") -> Path:
    """
    Write the byte stream to `directory/file_name`, replacing any existing file.

    Returns:
        Absolute path of the written file
    """
    file_path = Path(directory).resolve() / file_name
    file_path.parent.mkdir(parents=True, exist_ok=True)

    with open(file_path, "wb") as f:
        for chunk in chunks:
            f.write(chunk)

    logger.info("Export written: path=%s", file_path)
    return file_path


def deliver(chunks: Iterable[bytes], file_name: str, config: Settings) -> str:
    """
    Deliver the export according to the run mode.

    Returns:
        Local or remote path the export was written to

    Raises:
        OSError: If the local write, SFTP connection or upload fails
        ValueError: If SFTP settings are incomplete in remote mode
    """
    if config.is_local:
        with log_duration(logger, "Saved file"):
            return str(save_local(chunks, file_name, config.LOCAL_OUTPUT_DIR))

    with log_duration(logger, "Uploaded file"):
        return upload_stream(chunks, config.SFTP_PATH, file_name, config)
