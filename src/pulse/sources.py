"""OS data sources backed by child processes or psutil.

Sources return raw text (or page counters) so the parsers in ``pulse.sampler``
and ``pulse.enumerator`` can be fed canned output in tests.
"""

import mmap
import re
import subprocess
from dataclasses import dataclass
from typing import Protocol

import psutil

from pulse import config
from pulse.log import get_logger

log = get_logger(__name__)


class ProcessTableSource(Protocol):
    """Produces ``pid rss user command`` text, header line first."""

    def read(self) -> str: ...


class SwapUsageSource(Protocol):
    """Produces text containing ``used = <number><K|M|G>``."""

    def read(self) -> str: ...


@dataclass(slots=True, frozen=True)
class VmCounters:
    """Kernel virtual-memory page counters."""

    page_size: int
    active: int
    wired: int
    compressed: int

    @property
    def used_bytes(self) -> int:
        return (self.active + self.wired + self.compressed) * self.page_size


class VmCounterSource(Protocol):
    """Reads kernel page counters; returns None when the query fails."""

    def read(self) -> VmCounters | None: ...


def session_user() -> str:
    """Return the login name owning this process, as ``ps`` reports it."""
    try:
        return psutil.Process().username()
    except (psutil.Error, OSError, KeyError) as e:
        log.warning("session_user_unavailable", error=str(e))
        return ""


_VM_STAT_PAGE_SIZE = re.compile(r"page size of (\d+) bytes")
_VM_STAT_COUNTER = re.compile(r'^"?([^":\n]+)"?:\s+(\d+)\.?\s*$', re.MULTILINE)


def parse_vm_stat(output: str) -> VmCounters | None:
    """
    Parse ``vm_stat`` output into page counters.

    Expects lines such as::

        Mach Virtual Memory Statistics: (page size of 16384 bytes)
        Pages active:                           301234.
        Pages wired down:                       112233.
        Pages occupied by compressor:            45678.

    Returns None when the page size or any required counter is missing.
    """
    page_match = _VM_STAT_PAGE_SIZE.search(output)
    if page_match is None:
        return None

    counters = {name.strip(): int(value) for name, value in _VM_STAT_COUNTER.findall(output)}
    try:
        return VmCounters(
            page_size=int(page_match.group(1)),
            active=counters["Pages active"],
            wired=counters["Pages wired down"],
            compressed=counters["Pages occupied by compressor"],
        )
    except KeyError:
        return None


def run_command(args: list[str], timeout: float = config.COMMAND_TIMEOUT_SECONDS) -> str:
    """
    Run a command and return its standard output.

    Spawn failures, non-zero exits and timeouts all yield an empty string.
    Standard error is discarded.
    """
    try:
        result = subprocess.run(
            args,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired:
        log.warning("command_timed_out", command=args[0], timeout=timeout)
        return ""
    except OSError as e:
        log.debug("command_failed", command=args[0], error=str(e))
        return ""

    if result.returncode != 0:
        log.debug("command_nonzero_exit", command=args[0], returncode=result.returncode)
        return ""
    return result.stdout


class PsProcessTableSource:
    """Full process table from ``ps -Ao pid,rss,user,comm``."""

    def __init__(self, timeout: float = config.COMMAND_TIMEOUT_SECONDS) -> None:
        self._timeout = timeout

    def read(self) -> str:
        return run_command(config.PS_COMMAND, timeout=self._timeout)


class SysctlSwapUsageSource:
    """Swap usage from ``sysctl vm.swapusage`` (macOS)."""

    def __init__(self, timeout: float = config.COMMAND_TIMEOUT_SECONDS) -> None:
        self._timeout = timeout

    def read(self) -> str:
        # vm.swapusage: total = 1024.00M  used = 12.00M  free = 1012.00M  (encrypted)
        return run_command(config.SWAP_USAGE_COMMAND, timeout=self._timeout)


class PsutilSwapUsageSource:
    """Swap usage from psutil, rendered in the ``vm.swapusage`` format."""

    def read(self) -> str:
        try:
            swap = psutil.swap_memory()
        except (OSError, RuntimeError) as e:
            log.debug("swap_query_failed", error=str(e))
            return ""
        mb = 1024 * 1024
        return (
            f"total = {swap.total / mb:.2f}M  "
            f"used = {swap.used / mb:.2f}M  "
            f"free = {swap.free / mb:.2f}M"
        )


class VmStatCounterSource:
    """Page counters from ``vm_stat`` (macOS)."""

    def __init__(self, timeout: float = config.COMMAND_TIMEOUT_SECONDS) -> None:
        self._timeout = timeout

    def read(self) -> VmCounters | None:
        return parse_vm_stat(run_command(config.VM_STAT_COMMAND, timeout=self._timeout))


class PsutilVmCounterSource:
    """
    Page counters derived from ``psutil.virtual_memory()``.

    psutil reports bytes; they are converted back to pages. There is no
    compressor on hosts without ``vm_stat``, so compressed is always 0.
    """

    def read(self) -> VmCounters | None:
        try:
            mem = psutil.virtual_memory()
        except (OSError, RuntimeError) as e:
            log.debug("vm_query_failed", error=str(e))
            return None
        page_size = mmap.PAGESIZE
        active = getattr(mem, "active", 0)
        wired = getattr(mem, "wired", 0)
        return VmCounters(
            page_size=page_size,
            active=active // page_size,
            wired=wired // page_size,
            compressed=0,
        )
