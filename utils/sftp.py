"""
SFTP Client Utilities

Provides SFTP client functionality with password or SSH key authentication.
Supports streaming uploads with remote directory creation. Uploads are written
to a `.part` file and renamed into place once complete. Failures are not
retried; they propagate to the caller.
"""

import logging
from pathlib import Path, PurePosixPath
from typing import Iterable, Tuple

import paramiko
from paramiko import SFTPClient, SSHClient

from utils.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


def get_sftp_client(config: Settings = default_settings) -> Tuple[SSHClient, SFTPClient]:
    """
    Create SFTP client connection.

    Uses SFTP_PASSWORD, or the RSA key at SFTP_KEY_PATH when one is configured.
    Disables host key checking.

    Returns:
        Tuple of (ssh_client, sftp_client)

    Raises:
        ValueError: If host or username are not configured
        FileNotFoundError: If the configured SSH key file is missing
        IOError: If connection cannot be established
    """
    if not config.SFTP_HOST:
        raise ValueError("SFTP_HOST is not configured")

    if not config.SFTP_USERNAME:
        raise ValueError("SFTP_USERNAME is not configured")

    private_key = None
    if config.SFTP_KEY_PATH:
        key_path = Path(config.SFTP_KEY_PATH)
        if not key_path.exists():
            raise FileNotFoundError(f"SSH key file not found: {key_path}")

        try:
            private_key = paramiko.RSAKey.from_private_key_file(
                str(key_path),
                password=config.SFTP_KEY_PASSPHRASE,
            )
        except paramiko.PasswordRequiredException:
            raise ValueError("SSH key requires passphrase but SFTP_KEY_PASSPHRASE not set")
        except paramiko.SSHException as e:
            raise paramiko.SSHException(f"Failed to load SSH key: {e}") from e

    ssh_client = SSHClient()
    ssh_client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

    try:
        ssh_client.connect(
            hostname=config.SFTP_HOST,
            port=config.SFTP_PORT,
            username=config.SFTP_USERNAME,
            password=config.SFTP_PASSWORD or None,
            pkey=private_key,
            timeout=config.SFTP_TIMEOUT,
            auth_timeout=config.SFTP_TIMEOUT,
        )

        sftp_client = ssh_client.open_sftp()

        return ssh_client, sftp_client

    except Exception as e:
        ssh_client.close()
        raise IOError(f"Failed to establish SFTP connection: {e}") from e


def upload_stream(
    chunks: Iterable[bytes],
    remote_dir: str,
    remote_name: str,
    config: Settings = default_settings,
) -> str:
    """
    Upload a byte stream to the SFTP server over a fresh session.

    Args:
        chunks: Byte chunks to write, consumed once
        remote_dir: Remote directory path (will be created if needed)
        remote_name: Remote filename
        config: Settings holding the SFTP connection details

    Returns:
        Remote path of the uploaded file

    Raises:
        ValueError: If SFTP configuration is invalid
        IOError: If connection or upload fails
    """
    remote_path = str(PurePosixPath(remote_dir or "/") / remote_name)
    partial_path = f"{remote_path}.part"

    ssh_client, sftp_client = get_sftp_client(config)
    logger.info("Connected to SFTP: host=%s, port=%d", config.SFTP_HOST, config.SFTP_PORT)

    try:
        _ensure_remote_dir(sftp_client, remote_dir)

        size = 0
        try:
            with sftp_client.open(partial_path, "wb") as remote_file:
                for chunk in chunks:
                    remote_file.write(chunk)
                    size += len(chunk)
            sftp_client.posix_rename(partial_path, remote_path)
        except Exception:
            _remove_quietly(sftp_client, partial_path)
            raise

        logger.info("Uploaded to SFTP: remote_path=%s, bytes=%d", remote_path, size)
        return remote_path

    finally:
        sftp_client.close()
        ssh_client.close()


def _remove_quietly(sftp_client: SFTPClient, remote_path: str) -> None:
    """Delete a leftover partial upload, logging instead of raising."""
    try:
        sftp_client.remove(remote_path)
    except IOError as e:
        logger.warning("Failed to remove partial upload %s: %s", remote_path, e)


def _ensure_remote_dir(sftp_client: SFTPClient, remote_dir: str) -> None:
    """
    Ensure remote directory exists, creating it recursively if needed.

    Args:
        sftp_client: Active SFTP client connection
        remote_dir: Remote directory path to create

    Raises:
        IOError: If directory creation fails
    """
    if not remote_dir or remote_dir == "/":
        return

    remote_dir = remote_dir.rstrip("/")

    try:
        sftp_client.stat(remote_dir)
        return
    except FileNotFoundError:
        pass

    parent_dir = str(PurePosixPath(remote_dir).parent)
    if parent_dir not in ("/", ".", remote_dir):
        _ensure_remote_dir(sftp_client, parent_dir)

    try:
        sftp_client.mkdir(remote_dir)
        logger.debug("Created remote directory: %s", remote_dir)
    except IOError as e:
        # Another client may have created it in the meantime
        try:
            sftp_client.stat(remote_dir)
        except FileNotFoundError:
            raise IOError(f"Failed to create remote directory {remote_dir}: {e}") from e
