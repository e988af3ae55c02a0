"""Platform detection for the native LanceDB driver."""

import glob
import platform
import sys
from dataclasses import dataclass
from typing import Optional

from codeindex.errors import UnsupportedPlatformError


@dataclass(frozen=True)
class PlatformTarget:
    """The driver build for one OS/CPU/libc combination."""

    name: str
    wheel_tags: tuple[str, ...]
    binary_name: str


_UNIX_BINARY = "_lancedb.abi3.so"
_WINDOWS_BINARY = "_lancedb.pyd"

# (system, machine, libc) -> driver build. libc is only meaningful on linux.
PLATFORM_TARGETS: dict[tuple[str, str, Optional[str]], PlatformTarget] = {
    ("linux", "x64", "gnu"): PlatformTarget(
        "linux-x64-gnu",
        ("manylinux_2_28_x86_64", "manylinux_2_17_x86_64", "manylinux2014_x86_64"),
        _UNIX_BINARY,
    ),
    ("linux", "arm64", "gnu"): PlatformTarget(
        "linux-arm64-gnu",
        ("manylinux_2_28_aarch64", "manylinux_2_17_aarch64", "manylinux2014_aarch64"),
        _UNIX_BINARY,
    ),
    ("linux", "x64", "musl"): PlatformTarget(
        "linux-x64-musl", ("musllinux_1_2_x86_64",), _UNIX_BINARY
    ),
    ("linux", "arm64", "musl"): PlatformTarget(
        "linux-arm64-musl", ("musllinux_1_2_aarch64",), _UNIX_BINARY
    ),
    ("darwin", "x64", None): PlatformTarget(
        "darwin-x64", ("macosx_10_15_x86_64",), _UNIX_BINARY
    ),
    ("darwin", "arm64", None): PlatformTarget(
        "darwin-arm64", ("macosx_11_0_arm64",), _UNIX_BINARY
    ),
    ("win32", "x64", None): PlatformTarget("win32-x64-msvc", ("win_amd64",), _WINDOWS_BINARY),
    ("win32", "arm64", None): PlatformTarget("win32-arm64-msvc", ("win_arm64",), _WINDOWS_BINARY),
}

_MACHINE_ALIASES = {
    "x86_64": "x64",
    "amd64": "x64",
    "x64": "x64",
    "aarch64": "arm64",
    "arm64": "arm64",
}


def _normalize_system(system: str) -> str:
    system = system.lower()
    if system.startswith("win"):
        return "win32"
    return system


def detect_libc() -> str:
    """Return ``gnu`` or ``musl`` for the running linux interpreter."""
    lib, _ = platform.libc_ver()
    if lib == "glibc":
        return "gnu"
    if glob.glob("/lib/ld-musl-*") or glob.glob("/usr/lib/ld-musl-*"):
        return "musl"
    return "gnu"


def detect_platform(
    system: Optional[str] = None,
    machine: Optional[str] = None,
    libc: Optional[str] = None,
) -> PlatformTarget:
    """Map the current (or given) platform to its driver build.

    Raises:
        UnsupportedPlatformError: no build exists for the combination
    """
    raw_system = system or sys.platform
    raw_machine = machine or platform.machine()

    os_name = _normalize_system(raw_system)
    arch = _MACHINE_ALIASES.get(raw_machine.lower(), raw_machine.lower())

    if os_name == "linux":
        libc = libc or detect_libc()
    else:
        libc = None

    target = PLATFORM_TARGETS.get((os_name, arch, libc))
    if target is None:
        raise UnsupportedPlatformError(raw_system, raw_machine, libc)
    return target
