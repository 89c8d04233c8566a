"""Probe executor: run one probe and normalize its outcome."""

import asyncio
import json
import logging
import time
from dataclasses import dataclass

from pydantic import JsonValue

from drupal_audit.context import AuditContext
from drupal_audit.errors import (
    ProbeError,
    ProbeExecError,
    ProbeParseError,
    ProbeTimeout,
)
from drupal_audit.models.registry import BASE_URL_MISSING, ProbeDescriptor
from drupal_audit.models.result import ExecutionResult, ProbeStatus, RawOutput
from drupal_audit.probes.base import Probe
from drupal_audit.probes.loading import load_probe_manifest

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60.0

JSON_START = ("{", "[")


@dataclass(frozen=True, kw_only=True)
class ProbeExecutor:
    """Runs probes with a hard timeout and classifies their outcome.

    Failures never propagate: every outcome becomes an ``ExecutionResult``
    whose value is either the probe's data or the descriptor's empty value.
    """

    default_timeout: float = DEFAULT_TIMEOUT

    async def execute(
        self, descriptor: ProbeDescriptor, context: AuditContext
    ) -> ExecutionResult:
        """Execute a probe and return its normalized result.

        Args:
            descriptor: Probe to run
            context: Paths, base URL and variables of the current run

        Returns:
            Result with status ok, empty, parse_error, exec_error or timeout

        """
        if descriptor.requires_base_url and not context.base_url:
            log.info("Skipping %s: %s", descriptor.qualified_name, BASE_URL_MISSING)
            return ExecutionResult(
                descriptor=descriptor,
                status="empty",
                value=descriptor.missing_base_url_value(),
                message=BASE_URL_MISSING,
            )

        timeout = descriptor.timeout or self.default_timeout
        started = time.monotonic()

        try:
            probe = self.build_probe(descriptor)
            async with asyncio.timeout(timeout):
                output = await probe.run(context)
        except TimeoutError:
            error: ProbeError = ProbeTimeout(
                f"{descriptor.qualified_name} did not complete within {timeout} seconds"
            )
            return failure(descriptor, "timeout", error, time.monotonic() - started)
        except OSError as e:
            error = ProbeExecError(f"{descriptor.qualified_name} could not start: {e}")
            return failure(descriptor, "exec_error", error, time.monotonic() - started)
        except Exception as e:
            error = ProbeExecError(f"{descriptor.qualified_name} failed: {e!r}")
            return failure(descriptor, "exec_error", error, time.monotonic() - started)

        return interpret(descriptor, output, time.monotonic() - started)

    def build_probe(self, descriptor: ProbeDescriptor) -> Probe:
        """Build the probe implementation for a descriptor's kind."""
        return load_probe_manifest(descriptor.kind).probe_factory(descriptor)


def interpret(
    descriptor: ProbeDescriptor, output: RawOutput, duration: float = 0.0
) -> ExecutionResult:
    """Classify captured output according to the descriptor's result type.

    A non-zero exit only turns into ``exec_error`` when stdout is empty or
    unusable, or when the descriptor does not treat non-zero exits as
    findings.
    """
    failed_exit = output.exit_code != 0

    if descriptor.result_type == "json":
        try:
            value = parse_json(output.stdout)
        except ProbeParseError as e:
            if failed_exit:
                exec_error = ProbeExecError(
                    f"{descriptor.qualified_name} exited with {output.exit_code}: {e}"
                )
                return failure(descriptor, "exec_error", exec_error, duration, output)
            return failure(descriptor, "parse_error", e, duration, output)

        if value is not None and not isinstance(value, dict | list):
            error: ProbeError = ProbeParseError(
                f"{descriptor.qualified_name} printed a JSON "
                f"{type(value).__name__}, expected an object or array"
            )
            status: ProbeStatus = "exec_error" if failed_exit else "parse_error"
            return failure(descriptor, status, error, duration, output)
    else:
        value = output.stdout.rstrip("\r\n") or None

    if value is None:
        if failed_exit:
            error = ProbeExecError(
                f"{descriptor.qualified_name} exited with {output.exit_code} "
                "and no output"
            )
            return failure(descriptor, "exec_error", error, duration, output)
        return ExecutionResult(
            descriptor=descriptor,
            status="empty",
            value=descriptor.empty_value(),
            raw_stderr=output.stderr,
            exit_code=output.exit_code,
            duration=duration,
        )

    if failed_exit and not descriptor.nonzero_exit_is_findings:
        error = ProbeExecError(
            f"{descriptor.qualified_name} exited with {output.exit_code}"
        )
        return failure(descriptor, "exec_error", error, duration, output)

    return ExecutionResult(
        descriptor=descriptor,
        status="ok",
        value=value,
        raw_stderr=output.stderr,
        exit_code=output.exit_code,
        duration=duration,
    )


def parse_json(stdout: str) -> JsonValue:
    """Parse probe stdout as JSON.

    Returns ``None`` for empty or ``null`` output. Lines printed before the
    document (CLI warnings and notices) are skipped.

    Raises:
        ProbeParseError: If no JSON document can be decoded

    """
    text = stdout.strip()
    if not text:
        return None

    try:
        value: JsonValue = json.loads(text)
        return value
    except json.JSONDecodeError as e:
        first_error = e

    decoder = json.JSONDecoder()
    offset = 0
    for line in text.splitlines(keepends=True):
        if line.lstrip().startswith(JSON_START):
            start = offset + len(line) - len(line.lstrip())
            try:
                value, _ = decoder.raw_decode(text, start)
            except json.JSONDecodeError:
                pass
            else:
                return value
        offset += len(line)

    raise ProbeParseError(f"Invalid JSON output: {first_error}")


def failure(
    descriptor: ProbeDescriptor,
    status: ProbeStatus,
    error: ProbeError,
    duration: float,
    output: RawOutput | None = None,
) -> ExecutionResult:
    """Build a failed result carrying the descriptor's empty value."""
    log.info("Probe %s: %s", status, error)
    return ExecutionResult(
        descriptor=descriptor,
        status=status,
        value=descriptor.empty_value(),
        raw_stderr=output.stderr if output else "",
        exit_code=output.exit_code if output else None,
        duration=duration,
        message=str(error),
    )
