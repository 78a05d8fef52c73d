"""Shared fakes for pulse tests."""

from dataclasses import dataclass, field
from pathlib import Path

import pytest

from pulse.cleaner import TrashError, Uninstaller
from pulse.enumerator import EnumerationStrategy, ProcessEnumerator
from pulse.registry import ProcessRegistry
from pulse.sampler import HostMemorySampler
from pulse.sources import VmCounters
from pulse.termination import TerminationService

SESSION_USER = "alice"
OWN_PID = 99999


def owner_reader(owners: dict | None = None):
    """Per-pid owner lookup; an exception value is raised instead of returned."""
    owners = owners or {}

    def read(pid: int) -> str:
        owner = owners.get(pid, SESSION_USER)
        if isinstance(owner, Exception):
            raise owner
        return owner

    return read


@dataclass
class FakeApp:
    """In-memory ManagedApplication."""

    pid: int
    localized_name: str | None = None
    bundle_path: Path | None = None
    bundle_identifier: str | None = None
    is_terminated: bool = False
    icon: object = None
    terminate_calls: int = 0

    def terminate(self) -> bool:
        self.terminate_calls += 1
        return True


@dataclass
class FakeWorkspace:
    apps: list[FakeApp] = field(default_factory=list)
    frontmost: int | None = None
    pumps: int = 0

    def running_applications(self) -> list[FakeApp]:
        return list(self.apps)

    def frontmost_pid(self) -> int | None:
        return self.frontmost

    def pump_events(self) -> None:
        self.pumps += 1


@dataclass
class FakeTextSource:
    text: str = ""
    reads: int = 0

    def read(self) -> str:
        self.reads += 1
        return self.text


@dataclass
class FakeVmSource:
    counters: VmCounters | None = None

    def read(self) -> VmCounters | None:
        return self.counters


@dataclass
class FakeTrash:
    """Records moves; raises TrashError for paths listed in ``fail``."""

    fail: set[Path] = field(default_factory=set)
    moved: list[Path] = field(default_factory=list)

    def move(self, path: Path) -> None:
        if path in self.fail:
            raise TrashError(f"Permission denied: {path}")
        self.moved.append(path)


@dataclass
class FakeKill:
    pids: list[int] = field(default_factory=list)

    def __call__(self, pid: int) -> None:
        self.pids.append(pid)


PS_HEADER = "  PID    RSS USER             COMM"


def ps_output(*rows: str) -> str:
    return "\n".join([PS_HEADER, *rows]) + "\n"


@pytest.fixture
def fake_trash() -> FakeTrash:
    return FakeTrash()


@pytest.fixture
def fake_kill() -> FakeKill:
    return FakeKill()


@pytest.fixture
def make_registry(fake_trash, fake_kill, tmp_path):
    """Build a ProcessRegistry wired entirely to fakes."""

    def _make(
        table: str = "",
        apps: list[FakeApp] | None = None,
        frontmost: int | None = None,
        strategy: EnumerationStrategy = EnumerationStrategy.FULL_TABLE,
        swap: str = "vm.swapusage: total = 2048.00M  used = 512.00M  free = 1536.00M",
        counters: VmCounters | None = VmCounters(page_size=4096, active=262144, wired=262144, compressed=0),
        rss: dict[int, int] | None = None,
        owners: dict | None = None,
    ) -> ProcessRegistry:
        workspace = FakeWorkspace(apps=apps or [], frontmost=frontmost)
        rss_map = rss or {}
        enumerator = ProcessEnumerator(
            workspace=workspace,
            table_source=FakeTextSource(table),
            strategy=strategy,
            session_user_name=SESSION_USER,
            own_pid=OWN_PID,
            rss_reader=rss_map.get,
            owner_reader=owner_reader(owners),
        )
        sampler = HostMemorySampler(
            vm_source=FakeVmSource(counters),
            swap_source=FakeTextSource(swap),
            total_bytes=8 * 1024**3,
        )
        return ProcessRegistry(
            enumerator=enumerator,
            sampler=sampler,
            workspace=workspace,
            termination=TerminationService(SESSION_USER, kill=fake_kill),
            uninstaller=Uninstaller(trash=fake_trash, residue_dirs=[tmp_path / "Caches"]),
        )

    return _make
