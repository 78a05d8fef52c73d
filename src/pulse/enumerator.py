"""Process enumeration for pulse."""

import os
import shutil
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

import psutil

from pulse import config
from pulse.classifier import classify
from pulse.log import get_logger
from pulse.models import BareProcess, ManagedApplication, ManagedProcess, ProcessRecord
from pulse.sources import ProcessTableSource, PsProcessTableSource, session_user
from pulse.workspace import Workspace, default_workspace

log = get_logger(__name__)

UNKNOWN_NAME = "Unknown"


class EnumerationStrategy(Enum):
    """How the process list is built."""

    REGISTRY_ONLY = "registry"  # Only apps known to the windowing subsystem
    FULL_TABLE = "table"  # Every process on the host, from ps


@dataclass(slots=True, frozen=True)
class ProcessTableRow:
    """One parsed line of process-table output."""

    pid: int
    rss_kb: int
    user: str
    command: str
    line: str


def parse_process_table(output: str) -> list[ProcessTableRow]:
    """
    Parse ``ps -Ao pid,rss,user,comm`` output.

    The first line is a header and is dropped. Lines with fewer than four
    fields, or a non-integer pid or rss, are skipped. The command keeps any
    embedded spaces.
    """
    rows: list[ProcessTableRow] = []
    for line in output.splitlines()[1:]:
        fields = line.split(None, 3)
        if len(fields) < 4:
            continue
        try:
            pid = int(fields[0])
            rss_kb = int(fields[1])
        except ValueError:
            continue
        rows.append(
            ProcessTableRow(
                pid=pid,
                rss_kb=max(0, rss_kb),
                user=fields[2],
                command=fields[3].strip(),
                line=line,
            )
        )
    return rows


def command_basename(command: str) -> str:
    """Return the last path segment of a command."""
    return command.rstrip("/").rsplit("/", 1)[-1] or UNKNOWN_NAME


def read_rss_kb(pid: int) -> int | None:
    """
    Resident set size of ``pid`` in kilobytes.

    Returns None if the process is gone, 0 if its memory cannot be read.
    """
    try:
        return psutil.Process(pid).memory_info().rss // 1024
    except (psutil.NoSuchProcess, psutil.ZombieProcess):
        return None
    except psutil.AccessDenied:
        return 0


def read_owner(pid: int) -> str:
    """
    Login name owning ``pid``.

    Raises psutil.NoSuchProcess if the process is gone and
    psutil.AccessDenied if its owner cannot be read.
    """
    return psutil.Process(pid).username()


class ProcessEnumerator:
    """
    Builds ProcessRecords from the process table and the workspace.

    Two strategies are supported:

    * ``FULL_TABLE`` parses ``ps`` output for every process and enriches rows
      whose pid is also a managed application.
    * ``REGISTRY_ONLY`` lists managed applications and queries each one's
      resident memory directly.

    The current process is always excluded. Output order is unspecified.
    """

    def __init__(
        self,
        workspace: Workspace | None = None,
        table_source: ProcessTableSource | None = None,
        strategy: EnumerationStrategy | None = None,
        session_user_name: str | None = None,
        own_pid: int | None = None,
        rss_reader: Callable[[int], int | None] = read_rss_kb,
        owner_reader: Callable[[int], str] = read_owner,
    ) -> None:
        """
        Initialize the ProcessEnumerator.

        Args:
            workspace: Windowing subsystem. Defaults to the platform workspace.
            table_source: Process table text. Defaults to running ``ps``.
            strategy: Forced strategy. Defaults to ``FULL_TABLE`` when a
                ``ps`` executable exists, else ``REGISTRY_ONLY``.
            session_user_name: Login name used for ownership checks.
            own_pid: Pid to exclude. Defaults to this process.
            rss_reader: Per-pid RSS query (KB) for ``REGISTRY_ONLY``.
            owner_reader: Per-pid owner query for ``REGISTRY_ONLY``. Falls back
                to the session user when access is denied.
        """
        self._workspace = workspace if workspace is not None else default_workspace()
        self._table_source = table_source if table_source is not None else PsProcessTableSource()
        if strategy is None:
            has_ps = shutil.which(config.PS_COMMAND[0]) is not None
            strategy = EnumerationStrategy.FULL_TABLE if has_ps else EnumerationStrategy.REGISTRY_ONLY
        self._strategy = strategy
        self._session_user = session_user_name if session_user_name is not None else session_user()
        self._own_pid = own_pid if own_pid is not None else os.getpid()
        self._rss_reader = rss_reader
        self._owner_reader = owner_reader

    @property
    def strategy(self) -> EnumerationStrategy:
        return self._strategy

    @property
    def session_user(self) -> str:
        return self._session_user

    def enumerate(self) -> list[ProcessRecord]:
        """Return a fresh list of classified ProcessRecords."""
        if self._strategy is EnumerationStrategy.REGISTRY_ONLY:
            return self._enumerate_registry()
        return self._enumerate_table()

    def _enumerate_table(self) -> list[ProcessRecord]:
        apps = {app.pid: app for app in self._workspace.running_applications()}
        records: list[ProcessRecord] = []

        for row in parse_process_table(self._table_source.read()):
            if row.pid == self._own_pid:
                continue
            app = apps.get(row.pid)
            records.append(
                self._build_record(
                    pid=row.pid,
                    memory_mb=row.rss_kb / 1024.0,
                    user=row.user,
                    fallback_name=command_basename(row.command),
                    raw_line=row.line,
                    app=app,
                )
            )

        log.debug("enumerated_process_table", count=len(records), managed=len(apps))
        return records

    def _enumerate_registry(self) -> list[ProcessRecord]:
        records: list[ProcessRecord] = []

        for app in self._workspace.running_applications():
            if app.pid == self._own_pid:
                continue
            rss_kb = self._rss_reader(app.pid)
            if rss_kb is None:
                continue
            try:
                user = self._owner_reader(app.pid)
            except psutil.AccessDenied:
                user = self._session_user
            except psutil.NoSuchProcess:
                continue
            bundle_path = app.bundle_path
            fallback = bundle_path.stem if bundle_path is not None else UNKNOWN_NAME
            records.append(
                self._build_record(
                    pid=app.pid,
                    memory_mb=max(0, rss_kb) / 1024.0,
                    user=user,
                    fallback_name=fallback,
                    raw_line=str(bundle_path or ""),
                    app=app,
                )
            )

        log.debug("enumerated_registry", count=len(records))
        return records

    def _build_record(
        self,
        pid: int,
        memory_mb: float,
        user: str,
        fallback_name: str,
        raw_line: str,
        app: ManagedApplication | None,
    ) -> ProcessRecord:
        is_user_app = classify(user, raw_line, app, self._session_user)
        if app is None:
            return BareProcess(
                pid=pid,
                name=fallback_name,
                memory_mb=memory_mb,
                user=user,
                is_user_app=is_user_app,
            )
        return ManagedProcess(
            pid=pid,
            name=app.localized_name or fallback_name,
            memory_mb=memory_mb,
            user=user,
            is_user_app=is_user_app,
            app=app,
        )
