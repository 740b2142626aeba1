"""Shared download and file helpers for the BLS and O*NET pipelines."""

import shutil
import zipfile
from pathlib import Path
from typing import Any, Optional, Tuple

import requests

from ..formatting import format_bytes
from ..logger import get_logger
from ..retry import RetryError, exponential_backoff
from ..storage import save_json

logger = get_logger()

# bls.gov rejects requests without a browser-like user agent
BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "*/*",
}

DEFAULT_TIMEOUT = 60


@exponential_backoff(max_retries=3, base_delay=1.0, exceptions=(requests.exceptions.Timeout, requests.exceptions.ConnectionError))
def _fetch_with_retry(url: str, **kwargs):
    """Fetch URL with automatic retry on transient errors."""
    kwargs.setdefault("timeout", DEFAULT_TIMEOUT)
    kwargs.setdefault("headers", BROWSER_HEADERS)
    return requests.get(url, **kwargs)


def fetch_with_error_handling(url: str, source: str, **kwargs):
    """Fetch URL with standardized error handling and logging.

    Args:
        url: The URL to fetch
        source: Data source name for logging and metrics (e.g. 'bls', 'onet')
        **kwargs: Passed through to requests.get (stream, timeout, headers)

    Returns:
        Response object on success

    Raises:
        ValueError: On any HTTP error, timeout, or request failure
    """
    label = source.upper()
    logger.record_download_attempt(source)
    try:
        resp = _fetch_with_retry(url, **kwargs)
        resp.raise_for_status()
        return resp
    except requests.exceptions.HTTPError as e:
        status = e.response.status_code if e.response is not None else "HTTPError"
        logger.record_download_failure(source, f"HTTPError_{status}")
        if status == 404:
            logger.warning(f"{label} URL not found", url=url, status=404)
            raise ValueError(f"{label} URL not found (404): {url}")
        logger.error(f"{label} request failed", url=url, status=status)
        raise ValueError(f"{label} request failed ({status}): {url}")
    except RetryError as e:
        error_type = type(e.__cause__).__name__ if e.__cause__ else "RetryError"
        logger.record_download_failure(source, error_type)
        logger.warning(f"{label} request kept failing", url=url, error=str(e))
        raise ValueError(f"{label} request timed out or could not connect. Try again later.")
    except requests.exceptions.RequestException as e:
        logger.record_download_failure(source, "RequestException")
        logger.error(f"{label} request error", url=url, error=str(e))
        raise ValueError(f"{label} request error: {e}")


def download_file(url: str, dest: Path, source: str, chunk_size: int = 1024 * 64) -> Tuple[Path, int]:
    """
    Stream ``url`` to ``dest``.

    Returns (path, size_in_bytes). Raises ValueError on HTTP failure or
    when the server returns an empty body; a partial file is removed.
    """
    dest.parent.mkdir(parents=True, exist_ok=True)
    resp = fetch_with_error_handling(url, source, stream=True)

    size = 0
    try:
        with dest.open("wb") as f:
            for chunk in resp.iter_content(chunk_size=chunk_size):
                if chunk:
                    f.write(chunk)
                    size += len(chunk)
    except (requests.exceptions.RequestException, OSError) as e:
        dest.unlink(missing_ok=True)
        logger.record_download_failure(source, type(e).__name__)
        raise ValueError(f"{source.upper()} download interrupted: {e}")
    finally:
        resp.close()

    if size == 0:
        dest.unlink(missing_ok=True)
        logger.record_download_failure(source, "EmptyFile")
        raise ValueError(f"{source.upper()} download is empty: {url}")

    logger.record_download_success(source)
    logger.info("Downloaded file", source=source, path=str(dest), size=format_bytes(size))
    return dest, size


def extract_zip(zip_path: Path, out_dir: Path, flatten_dir: Optional[str] = None) -> list:
    """
    Extract ``zip_path`` into ``out_dir`` and return the extracted file paths.

    When ``flatten_dir`` names a top-level folder inside the archive, its
    files are moved up into ``out_dir`` and the folder is removed.
    """
    if not zip_path.exists():
        raise FileNotFoundError(f"ZIP file not found: {zip_path}")

    out_dir.mkdir(parents=True, exist_ok=True)
    root = out_dir.resolve()
    try:
        with zipfile.ZipFile(zip_path) as archive:
            for member in archive.namelist():
                target = (out_dir / member).resolve()
                if root != target and root not in target.parents:
                    raise ValueError(f"Unsafe path in archive: {member}")
            archive.extractall(out_dir)
    except zipfile.BadZipFile as e:
        raise ValueError(f"Failed to extract ZIP {zip_path.name}: {e}")

    if flatten_dir:
        nested = out_dir / flatten_dir
        if nested.is_dir():
            for item in nested.iterdir():
                target = out_dir / item.name
                if target.exists():
                    if target.is_dir():
                        shutil.rmtree(target)
                    else:
                        target.unlink()
                shutil.move(str(item), str(target))
            nested.rmdir()

    files = sorted(p for p in out_dir.rglob("*") if p.is_file())
    logger.info("Extracted archive", zip=zip_path.name, files=len(files))
    return files


def write_json(path: Path, data: Any) -> int:
    """Write pretty-printed JSON; returns the file size in bytes."""
    save_json(path, data)
    return path.stat().st_size
