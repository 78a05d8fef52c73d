"""Host memory sampling for pulse."""

import re
import sys

import psutil

from pulse.log import get_logger
from pulse.models import SystemStats
from pulse.sources import (
    PsutilSwapUsageSource,
    PsutilVmCounterSource,
    SwapUsageSource,
    SysctlSwapUsageSource,
    VmCounterSource,
    VmStatCounterSource,
)

log = get_logger(__name__)

GB = 1024**3

_SWAP_USED = re.compile(r"used\s*=\s*([0-9]*\.?[0-9]+)([KMG])")
_UNIT_TO_GB = {
    "K": 1.0 / (1024 * 1024),
    "M": 1.0 / 1024,
    "G": 1.0,
}


def parse_swap_used(output: str) -> float:
    """
    Extract the swap ``used`` figure from ``vm.swapusage`` style text, in GB.

    Returns 0.0 for anything it cannot parse.
    """
    match = _SWAP_USED.search(output)
    if match is None:
        return 0.0
    value, unit = match.groups()
    try:
        return float(value) * _UNIT_TO_GB[unit]
    except (ValueError, KeyError):
        return 0.0


class HostMemorySampler:
    """
    Samples physical and swap memory usage.

    Physical used is ``(active + wired + compressed) * page_size``. A failed
    counter read leaves it at 0; a failed swap read leaves swap at 0.
    ``sample()`` never raises.
    """

    def __init__(
        self,
        vm_source: VmCounterSource | None = None,
        swap_source: SwapUsageSource | None = None,
        total_bytes: int | None = None,
    ) -> None:
        """
        Initialize the HostMemorySampler.

        Args:
            vm_source: Page counter source. Defaults to ``vm_stat`` on macOS,
                psutil elsewhere.
            swap_source: Swap usage source. Defaults to ``sysctl`` on macOS,
                psutil elsewhere.
            total_bytes: Fixed physical memory size. Read from psutil if None.
        """
        darwin = sys.platform == "darwin"
        if vm_source is None:
            vm_source = VmStatCounterSource() if darwin else PsutilVmCounterSource()
        if swap_source is None:
            swap_source = SysctlSwapUsageSource() if darwin else PsutilSwapUsageSource()
        self._vm_source = vm_source
        self._swap_source = swap_source
        self._total_bytes = total_bytes

    def sample(self) -> SystemStats:
        """Return a fresh SystemStats snapshot."""
        total = self._read_total() / GB

        physical_used = 0.0
        counters = self._vm_source.read()
        if counters is not None:
            physical_used = counters.used_bytes / GB
        else:
            log.warning("vm_counters_unavailable")

        swap_used = parse_swap_used(self._swap_source.read())

        return SystemStats(
            total_ram=total,
            physical_used_ram=physical_used,
            swap_used_ram=swap_used,
        )

    def _read_total(self) -> int:
        if self._total_bytes is not None:
            return self._total_bytes
        try:
            return psutil.virtual_memory().total
        except (OSError, RuntimeError) as e:
            log.warning("total_memory_unavailable", error=str(e))
            return 0
