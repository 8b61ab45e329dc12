from __future__ import annotations

import asyncio
from dataclasses import dataclass, field


class HookError(RuntimeError):
    pass


async def _run(argv: list[str]) -> str:
    proc = await asyncio.create_subprocess_exec(
        *argv,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    out, err = await proc.communicate()
    if proc.returncode != 0:
        tail = (err or b"").decode("utf-8", errors="replace").strip()[-500:]
        raise HookError(f"command failed rc={proc.returncode} cmd={argv[0]} stderr={tail}")
    return (out or b"").decode("utf-8", errors="replace")


@dataclass(frozen=True)
class CommandHooks:
    """
    External refresh/apply operations backed by shell commands.

    refresh_cmd gets "{uid}" substituted in every argument; when no argument
    mentions it, the uid is appended as the last argument.
    """

    refresh_cmd: list[str] = field(default_factory=list)
    apply_cmd: list[str] = field(default_factory=list)

    def refresh_argv(self, uid: str) -> list[str]:
        if not any("{uid}" in a for a in self.refresh_cmd):
            return [*self.refresh_cmd, uid]
        return [a.replace("{uid}", uid) for a in self.refresh_cmd]

    async def refresh_profile(self, uid: str) -> str:
        if not self.refresh_cmd:
            raise HookError("PROFILE_TIMER_REFRESH_CMD is not configured")
        return await _run(self.refresh_argv(uid))

    async def apply_config(self) -> str:
        if not self.apply_cmd:
            raise HookError("PROFILE_TIMER_APPLY_CMD is not configured")
        return await _run(list(self.apply_cmd))
