# ----------------------------------------------------------------
# Cron Registration
# ----------------------------------------------------------------
from typing import List, Sequence

from crypto_analyzer_setup.commands import run_command_async
from crypto_analyzer_setup.log import get_logger


def merge_entries(existing: Sequence[str], entries: Sequence[str]) -> List[str]:
    """
    Append entries that are not already in the crontab.

    Existing lines keep their order; comparison ignores surrounding
    whitespace so a hand-edited crontab does not gain duplicates.
    """
    present = {line.strip() for line in existing}
    merged = list(existing)
    for entry in entries:
        if entry.strip() not in present:
            merged.append(entry)
            present.add(entry.strip())
    return merged


async def read_crontab(user: str) -> List[str]:
    """Return the user's crontab lines; a user without one has none."""
    result = await run_command_async(
        ["crontab", "-u", user, "-l"],
        capture_output=True,
        text=True,
        check=False,
    )
    if result.returncode != 0:
        return []
    return result.stdout.splitlines()


async def register_cron_entries(user: str, entries: Sequence[str]) -> List[str]:
    """Install entries into the user's crontab. Returns the entries added."""
    logger = get_logger()
    existing = await read_crontab(user)
    merged = merge_entries(existing, entries)
    added = merged[len(existing):]

    if not added:
        logger.info(f"Cron entries already registered for {user}.")
        return []

    await run_command_async(
        ["crontab", "-u", user, "-"],
        input="\n".join(merged) + "\n",
    )
    for entry in added:
        logger.info(f"Registered cron entry for {user}: {entry}")
    return added
