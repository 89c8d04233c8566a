"""Probe that runs a shell command template."""

import asyncio
import contextlib
import logging
import os
import signal
from dataclasses import dataclass

from drupal_audit.context import AuditContext
from drupal_audit.models.registry import ProbeDescriptor
from drupal_audit.models.result import RawOutput
from drupal_audit.probes.base import Probe
from drupal_audit.probes.manifest import ProbeManifest

log = logging.getLogger(__name__)

SHELL = "/bin/bash"


@dataclass(frozen=True, kw_only=True)
class ShellProbe(Probe):
    """Run a command line through bash in the project directory.

    The command runs in its own session so that cancellation kills the whole
    process group, pipelines and helper scripts included.
    """

    command: str
    shell: str = SHELL

    @classmethod
    def from_descriptor(cls, descriptor: ProbeDescriptor) -> "ShellProbe":
        """Create probe from a registry descriptor."""
        return cls(command=descriptor.invocation)

    async def run(self, context: AuditContext) -> RawOutput:
        """Run the materialized command and capture its output."""
        command = context.materialize(self.command)
        log.debug("Running: %s", command)

        process = await asyncio.create_subprocess_shell(
            command,
            cwd=context.project_dir,
            env=context.environment(),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=True,
            executable=self.shell,
        )
        try:
            stdout, stderr = await process.communicate()
        except asyncio.CancelledError:
            kill_process_group(process)
            await process.wait()
            raise

        return RawOutput(
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
            exit_code=process.returncode if process.returncode is not None else -1,
        )


def kill_process_group(process: asyncio.subprocess.Process) -> None:
    """Kill a subprocess started with ``start_new_session`` and its children.

    The group outlives its leader, so background children are killed even
    when the shell itself has already exited.
    """
    with contextlib.suppress(ProcessLookupError):
        os.killpg(process.pid, signal.SIGKILL)
    log.debug("Killed process group %s", process.pid)


shell_manifest = ProbeManifest(probe_factory=ShellProbe.from_descriptor)
