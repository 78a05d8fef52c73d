"""Configuration constants for pulse."""

import sys
from pathlib import Path

# ── Refresh & Timing ─────────────────────────────────────────────────
POLL_RATE_SECONDS = 2.0             # Background refresh interval
MIN_POLL_RATE_SECONDS = 0.1
COMMAND_TIMEOUT_SECONDS = 5.0       # Max wait for ps / sysctl / vm_stat / osascript
UI_DRAIN_INTERVAL_SECONDS = 0.5     # How often the TUI drains the snapshot queue
WORKSPACE_PUMP_INTERVAL_SECONDS = 0.25  # Main run loop turns for NSWorkspace updates

# ── Smart Suggestions ────────────────────────────────────────────────
SUGGESTION_THRESHOLD_MB = 300.0     # Background user apps above this are suggested

# ── Classification ───────────────────────────────────────────────────
SYSTEM_PATH_PREFIXES = ("/System", "/usr", "/bin")
APPLICATIONS_MARKER = "/Applications"
USER_HOME_MARKER = "/Users/"
USER_HOME_PREFIX = "/Users"

# ── External Commands ────────────────────────────────────────────────
# procps truncates the user column to 8 characters unless given a width;
# BSD ps rejects the width syntax.
PS_COMMAND = (
    ["/bin/ps", "-Ao", "pid,rss,user,comm"]
    if sys.platform == "darwin"
    else ["/bin/ps", "-Ao", "pid,rss,user:64,comm"]
)
SWAP_USAGE_COMMAND = ["/usr/sbin/sysctl", "vm.swapusage"]
VM_STAT_COMMAND = ["/usr/bin/vm_stat"]

# ── Residue Cleanup ──────────────────────────────────────────────────
# Per-user Library subdirectories scanned after an app bundle is trashed.
RESIDUE_SUBDIRECTORIES = (
    "Caches",
    "Preferences",
    "Application Support",
    "Saved Application State",
    "HTTPStorages",
    "Containers",
)
RESIDUE_MATCH_MODE = "substring"  # "substring" or "prefix", see pulse.cleaner.ResidueMatch


def user_library() -> Path:
    """Return the current user's ~/Library directory."""
    return Path.home() / "Library"


def residue_directories(library: Path | None = None) -> list[Path]:
    """Return the residue directories under ``library`` (default ~/Library)."""
    base = library if library is not None else user_library()
    return [base / name for name in RESIDUE_SUBDIRECTORIES]


def log_path() -> Path:
    """Log file for the TUI. The terminal itself belongs to the UI."""
    if sys.platform == "darwin":
        return user_library() / "Logs" / "pulse.log"
    return Path.home() / ".cache" / "pulse" / "pulse.log"
