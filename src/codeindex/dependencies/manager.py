"""Provisioning of the LanceDB driver into an isolated directory.

The driver ships a native extension per platform, so it is installed on
first use rather than declared as a hard dependency. The install is a
one-time cost per machine and pinned version.
"""

import asyncio
import importlib
import logging
import sys
from importlib.metadata import PathDistribution
from pathlib import Path
from typing import Callable, Optional

from codeindex.constants import LANCEDB_DEPENDENCIES_DIRECTORY_NAME
from codeindex.dependencies.platform import PlatformTarget, detect_platform
from codeindex.errors import DependencyInstallError

logger = logging.getLogger(__name__)

PACKAGE_NAME = "lancedb"
LANCEDB_VERSION = "0.25.3"

ProgressCallback = Callable[[str, str], None]


class DependencyManager:
    """Checks for and installs the pinned LanceDB driver.

    Layout under ``<storage_root>/lancedb-deps``::

        requirements.txt        pinned descriptor written before install
        site-packages/          pip --target directory, prepended to sys.path
    """

    def __init__(
        self,
        storage_root: Path | str,
        version: str = LANCEDB_VERSION,
        progress: Optional[ProgressCallback] = None,
        target: Optional[PlatformTarget] = None,
    ):
        self.dependencies_dir = Path(storage_root).expanduser() / LANCEDB_DEPENDENCIES_DIRECTORY_NAME
        self.version = version
        self._progress = progress
        self._target = target
        self._install_lock: Optional[asyncio.Lock] = None

    @property
    def target(self) -> PlatformTarget:
        """Driver build for this machine (detected lazily)."""
        if self._target is None:
            self._target = detect_platform()
        return self._target

    @property
    def modules_path(self) -> Path:
        """Directory holding the isolated driver install."""
        return self.dependencies_dir / "site-packages"

    @property
    def requirements_path(self) -> Path:
        return self.dependencies_dir / "requirements.txt"

    @property
    def package_dir(self) -> Path:
        return self.modules_path / PACKAGE_NAME

    @property
    def binary_path(self) -> Path:
        return self.package_dir / self.target.binary_name

    def _find_dist_info(self) -> Optional[Path]:
        candidates = sorted(self.modules_path.glob(f"{PACKAGE_NAME}-*.dist-info"))
        return candidates[-1] if candidates else None

    def installed_version(self) -> Optional[str]:
        """Version declared by the installed distribution, if any."""
        dist_info = self._find_dist_info()
        if dist_info is None:
            return None
        try:
            return PathDistribution(dist_info).version
        except (OSError, KeyError, TypeError) as e:
            logger.debug(f"Unreadable distribution metadata in {dist_info}: {e}")
            return None

    def check_binaries(self) -> bool:
        """Return True if the pinned driver is installed for this platform.

        Requires the package directory, its dist-info folder and the native
        binary to exist, and the declared version to match exactly. Any
        error while checking counts as "not available".
        """
        try:
            if not self.package_dir.is_dir():
                return False
            if self._find_dist_info() is None:
                return False
            if not self.binary_path.is_file():
                logger.debug(f"Native binary missing: {self.binary_path}")
                return False
            installed = self.installed_version()
            if installed != self.version:
                logger.debug(f"Installed LanceDB {installed} does not match pinned {self.version}")
                return False
            return True
        except Exception as e:
            logger.debug(f"LanceDB availability check failed: {e}")
            return False

    def install_command(self) -> list[str]:
        """pip invocation installing the pinned driver into ``modules_path``."""
        command = [
            sys.executable,
            "-m",
            "pip",
            "install",
            "--disable-pip-version-check",
            "--no-input",
            "--upgrade",
            "--target",
            str(self.modules_path),
            "--only-binary=:all:",
        ]
        for tag in self.target.wheel_tags:
            command.extend(["--platform", tag])
        command.extend(["-r", str(self.requirements_path)])
        return command

    async def ensure_available(self) -> None:
        """Install the driver unless it is already present.

        Raises:
            UnsupportedPlatformError: no driver build for this machine
            DependencyInstallError: pip failed or produced an incomplete install
        """
        if self.check_binaries():
            return

        if self._install_lock is None:
            self._install_lock = asyncio.Lock()

        async with self._install_lock:
            # Another caller may have finished the install while we waited.
            if self.check_binaries():
                return
            await self._install()

    async def _install(self) -> None:
        target = self.target
        self._report(
            "installing",
            f"Installing LanceDB {self.version} ({target.name}), this only happens once",
        )

        self.dependencies_dir.mkdir(parents=True, exist_ok=True)
        self.requirements_path.write_text(f"{PACKAGE_NAME}=={self.version}\n", encoding="utf-8")

        command = self.install_command()
        logger.debug(f"Running: {' '.join(command)}")

        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
            raw_output, _ = await process.communicate()
        except OSError as e:
            raise DependencyInstallError(
                f"Could not start pip to install {PACKAGE_NAME}=={self.version}: {e}",
                version=self.version,
            ) from e

        output = raw_output.decode("utf-8", errors="replace") if raw_output else ""
        if process.returncode != 0:
            logger.error(f"LanceDB installation failed:\n{output}")
            raise DependencyInstallError(
                f"Failed to install {PACKAGE_NAME}=={self.version} into {self.modules_path} "
                f"(pip exited with {process.returncode}). Check network access and that a "
                f"{target.name} build of version {self.version} exists.",
                version=self.version,
                output=output,
            )

        if not self.check_binaries():
            raise DependencyInstallError(
                f"{PACKAGE_NAME}=={self.version} was installed but {target.binary_name} "
                f"was not found in {self.package_dir}",
                version=self.version,
                output=output,
            )

        self._report("completed", f"LanceDB {self.version} installed")
        logger.info(f"LanceDB {self.version} installed to {self.modules_path}")

    def activate(self) -> None:
        """Prepend the isolated install to the module search path."""
        path = str(self.modules_path)
        if path not in sys.path:
            sys.path.insert(0, path)
            importlib.invalidate_caches()

    def _report(self, phase: str, message: str) -> None:
        logger.debug(f"[{phase}] {message}")
        if self._progress is not None:
            self._progress(phase, message)
