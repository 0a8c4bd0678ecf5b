import asyncio

import structlog

logger = structlog.get_logger()

_GIT_TIMEOUT_SECONDS = 2.0


async def get_git_branch(cwd: "str") -> "str":
    """
    returns the current branch of the repository containing cwd,
    or an empty string outside a repository, on a detached HEAD or
    when git is unavailable.
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            "git",
            "branch",
            "--show-current",
            cwd=cwd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
        )
    except OSError as exc:
        logger.debug("git_unavailable", error=str(exc))
        return ""

    try:
        stdout, _ = await asyncio.wait_for(
            proc.communicate(), timeout=_GIT_TIMEOUT_SECONDS
        )
    except TimeoutError:
        proc.kill()
        await proc.wait()
        logger.debug("git_branch_timeout", cwd=cwd)
        return ""

    if proc.returncode != 0:
        return ""

    return stdout.decode("utf-8", errors="replace").strip()
