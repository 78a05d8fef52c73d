"""Application uninstall and residue cleanup for pulse.

Uninstalling moves the application bundle to the Trash and then trashes
anything in the per-user Library folders whose name contains the bundle
identifier. This is a best-effort pattern match, not a package manager: it
can miss files stored under other names, and a plain substring match will
also catch another app whose identifier extends this one
(``com.acme.widget`` matches ``com.acme.widget2.cache``).
"""

import subprocess
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Protocol

from pulse import config
from pulse.log import get_logger
from pulse.models import ManagedProcess, ProcessRecord

log = get_logger(__name__)


class TrashError(OSError):
    """Raised when an item could not be moved to the Trash."""


class Trash(Protocol):
    def move(self, path: Path) -> None: ...


class FinderTrash:
    """Moves items to the Trash through Finder, so they can be put back."""

    def __init__(self, timeout: float = config.COMMAND_TIMEOUT_SECONDS) -> None:
        self._timeout = timeout

    def move(self, path: Path) -> None:
        if not path.exists():
            raise TrashError(f"No such file: {path}")
        quoted = str(path).replace("\\", "\\\\").replace('"', '\\"')
        script = f'tell application "Finder" to delete POSIX file "{quoted}"'
        try:
            subprocess.run(
                ["osascript", "-e", script],
                capture_output=True,
                text=True,
                timeout=self._timeout,
                check=True,
            )
        except subprocess.CalledProcessError as e:
            raise TrashError(f"Finder refused to trash {path}: {e.stderr.strip()}") from e
        except subprocess.TimeoutExpired as e:
            raise TrashError(f"Timed out trashing {path}") from e
        except OSError as e:
            raise TrashError(f"Could not run osascript: {e}") from e


class ResidueMatch(Enum):
    """How residue filenames are matched against a bundle identifier."""

    SUBSTRING = "substring"  # Case-sensitive containment
    PREFIX = "prefix"  # Filename starts with the identifier


def residue_matches(filename: str, bundle_id: str, mode: ResidueMatch = ResidueMatch.SUBSTRING) -> bool:
    """Return True if ``filename`` looks like residue of ``bundle_id``."""
    if not bundle_id:
        return False
    if mode is ResidueMatch.PREFIX:
        return filename.startswith(bundle_id)
    return bundle_id in filename


@dataclass(slots=True)
class UninstallReport:
    """Outcome of one uninstall. Failures never abort the whole operation."""

    pid: int
    bundle_path: Path | None = None
    bundle_trashed: bool = False
    bundle_identifier: str | None = None
    residues_trashed: list[Path] = field(default_factory=list)
    failures: list[tuple[Path, str]] = field(default_factory=list)

    @property
    def attempted(self) -> bool:
        """False when the record had nothing to uninstall."""
        return self.bundle_path is not None


class Uninstaller:
    """Terminates an application, trashes its bundle, then its residue."""

    def __init__(
        self,
        trash: Trash | None = None,
        residue_dirs: list[Path] | None = None,
        match: ResidueMatch | None = None,
    ) -> None:
        """
        Initialize the Uninstaller.

        Args:
            trash: Trash backend. Defaults to Finder.
            residue_dirs: Directories scanned for residue. Defaults to the
                well-known folders under ~/Library.
            match: Residue filename matching rule. Defaults to
                ``config.RESIDUE_MATCH_MODE``.
        """
        self._trash = trash if trash is not None else FinderTrash()
        self._residue_dirs = residue_dirs if residue_dirs is not None else config.residue_directories()
        self._match = match if match is not None else ResidueMatch(config.RESIDUE_MATCH_MODE)

    @property
    def match(self) -> ResidueMatch:
        return self._match

    @property
    def residue_dirs(self) -> list[Path]:
        return list(self._residue_dirs)

    def uninstall(self, record: ProcessRecord) -> UninstallReport:
        """
        Uninstall the application behind ``record``.

        Bare processes and apps without a bundle location are a no-op. If
        the bundle itself cannot be trashed, no residue is touched.
        """
        report = UninstallReport(pid=record.pid)
        if not isinstance(record, ManagedProcess):
            return report

        app = record.app
        bundle_path = app.bundle_path
        if bundle_path is None:
            return report
        report.bundle_path = bundle_path

        if not app.is_terminated:
            app.terminate()

        try:
            self._trash.move(bundle_path)
        except OSError as e:
            log.warning("bundle_trash_failed", path=str(bundle_path), error=str(e))
            report.failures.append((bundle_path, str(e)))
            return report
        report.bundle_trashed = True
        log.info("bundle_trashed", path=str(bundle_path))

        bundle_id = app.bundle_identifier
        if not bundle_id:
            return report
        report.bundle_identifier = bundle_id

        for directory in self._residue_dirs:
            self._clean_directory(directory, bundle_id, report)

        log.info(
            "uninstall_finished",
            bundle_id=bundle_id,
            residues=len(report.residues_trashed),
            failures=len(report.failures),
        )
        return report

    def find_residue(self, bundle_id: str) -> list[Path]:
        """List residue candidates for ``bundle_id`` without touching them."""
        found: list[Path] = []
        for directory in self._residue_dirs:
            found.extend(self._matching_entries(directory, bundle_id))
        return found

    def _clean_directory(self, directory: Path, bundle_id: str, report: UninstallReport) -> None:
        for entry in self._matching_entries(directory, bundle_id):
            try:
                self._trash.move(entry)
            except OSError as e:
                log.warning("residue_trash_failed", path=str(entry), error=str(e))
                report.failures.append((entry, str(e)))
                continue
            log.info("residue_trashed", path=str(entry))
            report.residues_trashed.append(entry)

    def _matching_entries(self, directory: Path, bundle_id: str) -> list[Path]:
        if not directory.is_dir():
            return []
        try:
            entries = sorted(directory.iterdir())
        except OSError as e:
            log.warning("residue_dir_unreadable", path=str(directory), error=str(e))
            return []
        return [entry for entry in entries if residue_matches(entry.name, bundle_id, self._match)]
