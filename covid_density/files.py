#
#  files.py
#
#  Helpers for downloading and locating source files.
#

import hashlib
import os
import shutil
from pathlib import Path
from typing import IO, Optional, Union

import click
import requests
import structlog
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TimeElapsedColumn,
    TransferSpeedColumn,
)

from covid_density import paths
from covid_density.exceptions import SourceUnavailable

log = structlog.get_logger()

# Seconds to wait for the server to respond, there is no retry
TIMEOUT = 60


def blue(s: str) -> str:
    return click.style(s, fg="blue")


def echo(action: str, message: str) -> None:
    action = f"{action:20s}"
    click.echo(f"{blue(action)}{message}")


def is_url(location: Union[str, Path]) -> bool:
    return str(location).startswith(("http://", "https://"))


def checksum_str(s: str) -> str:
    "Return the md5 hex digest of the string."
    return hashlib.md5(s.encode()).hexdigest()


def _create_progress_bar() -> Progress:
    """Create a fancy progress bar to use for display of download progress."""
    return Progress(
        "[progress.description]{task.description}",
        BarColumn(bar_width=None),
        "[progress.percentage]{task.percentage:>3.1f}%",
        "•",
        DownloadColumn(),
        "•",
        TransferSpeedColumn(),
        "•",
        TimeElapsedColumn(),
    )


def _stream_to_file(
    r: requests.Response,
    file: IO[bytes],
    chunk_size: int = 2**14,
    progress_bar_min_bytes: int = 2**25,
) -> str:
    """Stream the response to the file, returning the checksum.
    :param progress_bar_min_bytes: Minimum number of bytes to display a progress bar for. Default is 32MB
    """
    total_length = int(r.headers.get("content-length", 0))

    md5 = hashlib.md5()

    display_progress = total_length > progress_bar_min_bytes
    if display_progress:
        progress = _create_progress_bar()
        progress.start()
        task_id = progress.add_task("Downloading", total=total_length)

    for chunk in r.iter_content(chunk_size=chunk_size):
        file.write(chunk)
        md5.update(chunk)
        if display_progress:
            progress.update(task_id, advance=len(chunk))  # type: ignore

    if display_progress:
        progress.stop()  # type: ignore

    return md5.hexdigest()


def download(url: str, filename: Union[str, Path], quiet: bool = False) -> None:
    "Download the file at the URL to the given local filename."
    filename = str(filename)
    tmp_filename = filename + ".tmp"
    try:
        with open(tmp_filename, "wb") as f, requests.get(url, stream=True, timeout=TIMEOUT) as r:
            r.raise_for_status()
            md5 = _stream_to_file(r, f)
    except requests.RequestException as e:
        if os.path.exists(tmp_filename):
            os.remove(tmp_filename)
        raise SourceUnavailable(f"Could not download {url}: {e}") from e

    shutil.move(tmp_filename, filename)

    log.info("files.downloaded", url=url, filename=filename, md5=md5)
    if not quiet:
        echo("DOWNLOADED", f"{url} -> {filename}")


def cache_path(url: str, cache_dir: Union[str, Path]) -> Path:
    """Local file for a URL, e.g. `<cache_dir>/<md5 of url>-time_series_covid19_confirmed_US.csv`."""
    basename = url.rstrip("/").rsplit("/", 1)[-1].split("?", 1)[0]
    return Path(cache_dir) / f"{checksum_str(url)}-{basename}"


def fetch(location: Union[str, Path], cache_dir: Optional[Union[str, Path]] = None, quiet: bool = False) -> Path:
    """Return a local file with the contents of `location`.

    Local paths are returned as they are. URLs are downloaded into `cache_dir` once and re-used afterwards.
    """
    if not is_url(location):
        path = Path(location)
        if not path.is_file():
            raise SourceUnavailable(f"Cannot find file: {path}")
        return path

    url = str(location)
    cache_dir = Path(cache_dir or paths.CACHE_DIR)
    path = cache_path(url, cache_dir)
    if path.exists():
        log.info("files.cached", url=url, filename=str(path))
        return path

    try:
        cache_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise SourceUnavailable(f"Cannot create cache directory {cache_dir}: {e}") from e

    download(url, path, quiet=quiet)
    return path
