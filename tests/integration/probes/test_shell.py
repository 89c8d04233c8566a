"""Integration tests for the shell probe using real bash processes."""

import asyncio
from pathlib import Path

import pytest

from drupal_audit.context import AuditContext
from drupal_audit.executor import ProbeExecutor
from drupal_audit.probes.shell import ShellProbe
from drupal_audit.testing.factories import ProbeDescriptorFactory


def is_running(pid: int) -> bool:
    """Whether a process exists and is not a zombie."""
    try:
        stat = Path(f"/proc/{pid}/stat").read_text()
    except FileNotFoundError:
        return False
    return stat.rsplit(")", 1)[1].split()[0] != "Z"


async def wait_for_exit(pid: int) -> bool:
    """Wait briefly for a killed process to disappear."""
    for _ in range(100):
        if not is_running(pid):
            return True
        await asyncio.sleep(0.01)
    return False


async def wait_for_pid(path: Path) -> int:
    """Wait until a probe has written its pid file."""
    for _ in range(300):
        if path.is_file() and path.read_text().strip():
            return int(path.read_text())
        await asyncio.sleep(0.01)
    raise AssertionError(f"{path} was never written")


class TestShellProbe:
    """Tests for ShellProbe.run."""

    async def test_captures_stdout(self, context: AuditContext) -> None:
        """Returns what the command prints."""
        probe = ShellProbe(command="""echo '{"drupal-version": "10.3.1"}'""")

        output = await probe.run(context)

        assert output.stdout == '{"drupal-version": "10.3.1"}\n'
        assert output.exit_code == 0

    async def test_captures_stderr_and_exit_code(self, context: AuditContext) -> None:
        """Diagnostics and the exit status are kept."""
        probe = ShellProbe(command="echo partial; echo 'drush: not found' >&2; exit 3")

        output = await probe.run(context)

        assert output.stdout == "partial\n"
        assert output.stderr == "drush: not found\n"
        assert output.exit_code == 3

    async def test_runs_in_project_dir(
        self, context: AuditContext, project_dir: Path
    ) -> None:
        """Commands run with the project root as working directory."""
        output = await ShellProbe(command="pwd").run(context)

        assert Path(output.stdout.strip()).resolve() == project_dir.resolve()

    async def test_substitutes_placeholders(self, context: AuditContext) -> None:
        """Placeholders are replaced before the command runs."""
        probe = ShellProbe(command='echo "${DOCROOT}|${BASE_URL:-none}"')

        output = await probe.run(context)

        assert output.stdout == "web|none\n"

    @pytest.mark.parametrize("command", ['echo "${BASE_URL}"', "echo ${BASE_URL}"])
    async def test_base_url_is_never_executed(
        self, project_dir: Path, command: str
    ) -> None:
        """Command substitution in a configured value stays literal text."""
        base_url = "https://example.com/$(touch pwned)`touch pwned2`"
        context = AuditContext(project_dir=project_dir, base_url=base_url)

        output = await ShellProbe(command=command).run(context)

        assert output.stdout == base_url + "\n"
        assert not (project_dir / "pwned").exists()
        assert not (project_dir / "pwned2").exists()

    async def test_exports_context_variables(self, context: AuditContext) -> None:
        """Context variables are visible in the environment of helper scripts."""
        probe = ShellProbe(command="bash -c 'echo $DOCROOT'")

        output = await probe.run(context)

        assert output.stdout == "web\n"

    async def test_supports_pipelines(
        self, context: AuditContext, project_dir: Path
    ) -> None:
        """Pipelines and redirections work as in a shell."""
        (project_dir / "web" / "modules" / "custom" / "foo").mkdir(parents=True)
        (project_dir / "web" / "modules" / "custom" / "bar").mkdir(parents=True)
        probe = ShellProbe(
            command="ls -1 ${DOCROOT}/modules/custom 2>/dev/null | sort | head -n 5"
        )

        output = await probe.run(context)

        assert output.stdout == "bar\nfoo\n"

    async def test_does_not_read_stdin(self, context: AuditContext) -> None:
        """Commands waiting on stdin see end of file instead of hanging."""
        output = await asyncio.wait_for(ShellProbe(command="cat").run(context), 5)

        assert output.stdout == ""


class TestTimeout:
    """Tests for killing probes that exceed their timeout."""

    async def test_kills_process_group(
        self, context: AuditContext, project_dir: Path
    ) -> None:
        """The shell and its children are killed when the probe times out."""
        descriptor = ProbeDescriptorFactory.build(
            invocation="sleep 30 & echo $! > child.pid; echo $$ > shell.pid; wait",
            timeout=1,
        )

        task = asyncio.create_task(ProbeExecutor().execute(descriptor, context))
        shell_pid = await wait_for_pid(project_dir / "shell.pid")
        child_pid = await wait_for_pid(project_dir / "child.pid")
        result = await task

        assert result.status == "timeout"
        assert result.value == {}
        assert not is_running(shell_pid)
        assert await wait_for_exit(child_pid)

    async def test_kills_children_of_exited_shell(
        self, context: AuditContext, project_dir: Path
    ) -> None:
        """Background children holding stdout open are killed after the shell exits."""
        descriptor = ProbeDescriptorFactory.build(
            invocation="(sleep 30; echo late) & echo $! > child.pid",
            timeout=1,
        )

        task = asyncio.create_task(ProbeExecutor().execute(descriptor, context))
        child_pid = await wait_for_pid(project_dir / "child.pid")
        result = await task

        assert result.status == "timeout"
        assert await wait_for_exit(child_pid)

    @pytest.mark.parametrize("result_type", ["json", "text"])
    async def test_timeout_returns_default(
        self, context: AuditContext, result_type: str
    ) -> None:
        """A hung probe yields its declared empty value."""
        descriptor = ProbeDescriptorFactory.build(
            invocation="sleep 30",
            result_type=result_type,
            default=[] if result_type == "json" else "0",
            timeout=0.2,
        )

        result = await ProbeExecutor().execute(descriptor, context)

        assert result.status == "timeout"
        assert result.value == ([] if result_type == "json" else "0")
        assert result.duration < 5
