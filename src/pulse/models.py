"""Data models for pulse."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Protocol


class ManagedApplication(Protocol):
    """
    Handle to an application registered with the windowing subsystem.

    Implementations wrap the OS object (e.g. ``NSRunningApplication``); the
    core only ever talks to this surface.
    """

    @property
    def pid(self) -> int: ...

    @property
    def localized_name(self) -> str | None: ...

    @property
    def icon(self) -> Any: ...

    @property
    def bundle_path(self) -> Path | None: ...

    @property
    def bundle_identifier(self) -> str | None: ...

    @property
    def is_terminated(self) -> bool: ...

    def terminate(self) -> bool: ...


@dataclass(slots=True, frozen=True)
class SystemStats:
    """Immutable snapshot of host memory usage, all values in gigabytes."""

    total_ram: float
    physical_used_ram: float
    swap_used_ram: float

    @property
    def free_ram(self) -> float:
        """Free memory, always derived from total and physical used."""
        return self.total_ram - self.physical_used_ram

    @property
    def used_ratio(self) -> float:
        if self.total_ram <= 0:
            return 0.0
        return self.physical_used_ram / self.total_ram

    @property
    def memory_pressure(self) -> str:
        return f"Phy: {self.physical_used_ram:.1f}/{self.total_ram:.0f} GB"

    @property
    def swap_string(self) -> str:
        return f"Swap: {self.swap_used_ram:.1f} GB"

    @classmethod
    def zero(cls) -> "SystemStats":
        return cls(total_ram=0.0, physical_used_ram=0.0, swap_used_ram=0.0)


@dataclass(slots=True, frozen=True)
class ProcessRecord:
    """
    A process observed during one registry refresh.

    Never instantiated directly: every record is either a ``BareProcess``
    or a ``ManagedProcess``. The pid is only unique at a point in time.
    """

    pid: int
    name: str
    memory_mb: float  # Resident set size
    user: str
    is_user_app: bool

    def __post_init__(self) -> None:
        if self.memory_mb < 0:
            raise ValueError(f"memory_mb must be >= 0, got {self.memory_mb}")

    @property
    def memory_usage(self) -> str:
        return format_memory(self.memory_mb)


@dataclass(slots=True, frozen=True)
class BareProcess(ProcessRecord):
    """A process unknown to the windowing subsystem. Can only be killed."""


@dataclass(slots=True, frozen=True)
class ManagedProcess(ProcessRecord):
    """A process registered with the windowing subsystem."""

    app: ManagedApplication = field(compare=False, repr=False, kw_only=True)

    @property
    def icon(self) -> Any:
        return self.app.icon

    @property
    def bundle_path(self) -> Path | None:
        return self.app.bundle_path

    @property
    def bundle_identifier(self) -> str | None:
        return self.app.bundle_identifier


@dataclass(slots=True, frozen=True)
class RegistrySnapshot:
    """What the presentation layer sees after every registry mutation."""

    processes: tuple[ProcessRecord, ...]
    stats: SystemStats


class ProcessFilter(Enum):
    """Views over the registry."""

    ALL = "all"
    USER = "user"
    SYSTEM = "system"

    @property
    def label(self) -> str:
        return {
            ProcessFilter.ALL: "All Processes",
            ProcessFilter.USER: "My Apps",
            ProcessFilter.SYSTEM: "System",
        }[self]


def filter_processes(
    processes: tuple[ProcessRecord, ...] | list[ProcessRecord],
    view: ProcessFilter,
) -> list[ProcessRecord]:
    """Return the processes visible in ``view``, preserving order."""
    if view is ProcessFilter.USER:
        return [p for p in processes if p.is_user_app]
    if view is ProcessFilter.SYSTEM:
        return [p for p in processes if not p.is_user_app]
    return list(processes)


def format_memory(megabytes: float) -> str:
    """Format a megabyte value as "512 MB" or "1.5 GB"."""
    if megabytes > 1024:
        return f"{megabytes / 1024:.1f} GB"
    return f"{megabytes:.0f} MB"
