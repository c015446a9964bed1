# ----------------------------------------------------------------
# Command Execution Utilities
# ----------------------------------------------------------------
import asyncio
import inspect
import shutil
import subprocess
import time
import urllib.request
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from rich.markup import escape
from rich.progress import (
    Progress,
    SpinnerColumn,
    TextColumn,
    BarColumn,
    TaskProgressColumn,
    TimeRemainingColumn,
)

from crypto_analyzer_setup.log import get_logger
from crypto_analyzer_setup.ui import NordColors, console, set_status

OPERATION_TIMEOUT: int = 600  # apt upgrades on a fresh VPS can be slow


class CommandTimeoutError(Exception):
    """Raised when a command does not finish within its timeout."""

    def __init__(self, cmd: List[str], timeout: Optional[int]):
        self.cmd = cmd
        self.timeout = timeout
        super().__init__(f"Command timed out after {timeout}s: {' '.join(cmd)}")


async def run_command_async(
    cmd: List[str],
    capture_output: bool = False,
    text: bool = False,
    check: bool = True,
    timeout: Optional[int] = OPERATION_TIMEOUT,
    input: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
) -> subprocess.CompletedProcess:
    """Run a system command asynchronously."""
    logger = get_logger()
    logger.debug(f"Running command: {' '.join(cmd)}")

    stdout = asyncio.subprocess.PIPE if capture_output else None
    stderr = asyncio.subprocess.PIPE if capture_output else None
    stdin = asyncio.subprocess.PIPE if input is not None else None

    proc = await asyncio.create_subprocess_exec(
        *cmd,
        stdin=stdin,
        stdout=stdout,
        stderr=stderr,
        env=env,
    )

    try:
        stdout_data, stderr_data = await asyncio.wait_for(
            proc.communicate(input.encode("utf-8") if input is not None else None),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        logger.error(f"Command timed out after {timeout} seconds: {' '.join(cmd)}")
        raise CommandTimeoutError(cmd, timeout)
    except asyncio.CancelledError:
        if proc.returncode is None:
            proc.kill()
            await proc.wait()
        logger.warning(f"Command cancelled, child killed: {' '.join(cmd)}")
        raise

    if text and stdout_data is not None:
        stdout_data = stdout_data.decode("utf-8")
    if text and stderr_data is not None:
        stderr_data = stderr_data.decode("utf-8")

    if check and proc.returncode != 0:
        if stderr_data:
            details = (
                stderr_data.decode("utf-8", errors="replace")
                if isinstance(stderr_data, bytes)
                else stderr_data
            )
            logger.error(f"Command failed: {' '.join(cmd)}: {details.strip()}")
        else:
            logger.error(f"Command failed with exit code {proc.returncode}: {' '.join(cmd)}")
        raise subprocess.CalledProcessError(
            proc.returncode, cmd, output=stdout_data, stderr=stderr_data
        )

    return subprocess.CompletedProcess(
        args=cmd,
        returncode=proc.returncode,
        stdout=stdout_data,
        stderr=stderr_data,
    )


async def command_exists_async(cmd: str) -> bool:
    """Check if a command exists in the system path."""
    return shutil.which(cmd) is not None


# ----------------------------------------------------------------
# Progress Utility: Run Function with Progress Indicator
# ----------------------------------------------------------------
async def run_with_progress_async(
    description: str,
    func: Callable[..., Any],
    *args: Any,
    task_name: Optional[str] = None,
    **kwargs: Any,
) -> Any:
    """Run a function with a progress indicator asynchronously."""
    if task_name:
        set_status(task_name, "in_progress", f"{description} in progress...")

    with Progress(
        SpinnerColumn(style=f"bold {NordColors.FROST_1}"),
        TextColumn("{task.description}"),
        BarColumn(
            bar_width=40, style=NordColors.FROST_4, complete_style=NordColors.FROST_2
        ),
        TaskProgressColumn(),
        TimeRemainingColumn(),
        console=console,
        transient=True,
    ) as progress:
        task_id = progress.add_task(description, total=None)
        start = time.time()

        try:
            if inspect.iscoroutinefunction(func):
                result = await func(*args, **kwargs)
            else:
                loop = asyncio.get_running_loop()
                result = await loop.run_in_executor(None, lambda: func(*args, **kwargs))
        except Exception as e:
            elapsed = time.time() - start
            progress.update(task_id, completed=100)
            console.print(
                f"[error]✗ {description} failed in {elapsed:.2f}s: {escape(str(e))}[/error]"
            )
            if task_name:
                set_status(task_name, "failed", f"Failed after {elapsed:.2f}s: {e}")
            raise

        elapsed = time.time() - start
        progress.update(task_id, completed=100)
        console.print(f"[success]✓ {description} completed in {elapsed:.2f}s[/success]")
        if task_name:
            set_status(task_name, "success", f"Completed in {elapsed:.2f}s")
        return result


# ----------------------------------------------------------------
# Download Helper
# ----------------------------------------------------------------
async def download_file_async(
    url: str, dest: Union[str, Path], timeout: int = 300
) -> None:
    """
    Download a file from the given URL to the destination asynchronously.

    Overwrites an existing file. A partial download is removed before the
    error propagates.
    """
    dest = Path(dest)
    logger = get_logger()
    logger.info(f"Downloading {url} to {dest}...")

    try:
        if shutil.which("wget"):
            await run_command_async(
                ["wget", "-q", url, "-O", str(dest)],
                capture_output=True,
                timeout=timeout,
            )
        elif shutil.which("curl"):
            await run_command_async(
                ["curl", "-fsSL", url, "-o", str(dest)],
                capture_output=True,
                timeout=timeout,
            )
        else:
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, urllib.request.urlretrieve, url, dest)
    except Exception as e:
        logger.error(f"Download failed: {e}")
        if dest.exists():
            dest.unlink()
        raise

    logger.info(f"Download complete: {dest}")
