"""Platform backends for mounting remote shares.

Each backend shells out to the platform's own tooling and translates its
failures into the share error taxonomy:

- NetUseShareMount: Windows `net use`, addresses the share by UNC path
  directly, so resolved paths are the UNC paths themselves.
- CifsShareMount: POSIX `mount -t cifs`, mounts //host/share under a
  local directory and maps UNC paths onto it.
"""

import contextlib
import os
import re
import subprocess
import sys
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from rtbackup.domain import (
    AlreadyMounted,
    AuthenticationError,
    Credential,
    MountNotFound,
    NetworkUnreachable,
    RemoteShareMount,
    ShareError,
)

Runner = Callable[..., subprocess.CompletedProcess]


def split_unc(address: str) -> list[str]:
    """Split ``\\\\host\\share\\dir`` into ``["host", "share", "dir"]``."""
    return [s for s in address.replace("/", "\\").split("\\") if s]


def _output(result: subprocess.CompletedProcess) -> str:
    return "\n".join(s.strip() for s in (result.stdout, result.stderr) if s and s.strip())


# =============================================================================
# Windows: net use
# =============================================================================

# System error numbers reported by `net use` ("System error 53 has occurred.")
_NET_USE_ERRORS: dict[int, type[ShareError]] = {
    5: AuthenticationError,  # access denied
    86: AuthenticationError,  # invalid password
    1326: AuthenticationError,  # unknown user name or bad password
    1327: AuthenticationError,  # account restriction
    1330: AuthenticationError,  # password expired
    1331: AuthenticationError,  # account disabled
    53: NetworkUnreachable,  # network path not found
    64: NetworkUnreachable,  # network name no longer available
    67: NetworkUnreachable,  # network name cannot be found
    1203: NetworkUnreachable,  # no network provider accepted the path
    1222: NetworkUnreachable,  # network not present
    1231: NetworkUnreachable,  # network location cannot be reached
    85: AlreadyMounted,  # local device name already in use
    1219: AlreadyMounted,  # multiple connections by different users
    2250: MountNotFound,  # network connection does not exist
}

_SYSTEM_ERROR_RE = re.compile(r"System error (\d+)")


def net_use_error(address: str, output: str) -> ShareError:
    """Map `net use` output to a ShareError subclass."""
    match = _SYSTEM_ERROR_RE.search(output)
    if match:
        code = int(match.group(1))
        error_cls = _NET_USE_ERRORS.get(code, ShareError)
        return error_cls(address, f"system error {code}")
    return ShareError(address, output or None)


@dataclass
class UncMount:
    """A share reachable by its UNC path once `net use` succeeds."""

    address: str

    def resolve(self, remote_path: str) -> str:
        return remote_path


class NetUseShareMount:
    """Mount shares with Windows `net use`.

    `net use` reports success when the calling user already holds a
    connection to the address, so mount() checks for one first and raises
    AlreadyMounted instead of adopting it.

    The secret is passed on the `net use` command line and is visible in
    the process list while the command runs; `net use` has no environment
    or pipe input for it. Omit the credential to use the logged-on user's
    own token instead.
    """

    def __init__(self, runner: Runner = subprocess.run):
        self._run = runner

    def connected(self, address: str) -> bool:
        """Return True if this session already has a connection to address."""
        result = self._run(["net", "use", address], capture_output=True, text=True)
        return result.returncode == 0

    def mount(self, address: str, credential: Credential | None) -> UncMount:
        if self.connected(address):
            raise AlreadyMounted(address, "connection exists outside rtbackup")

        cmd = ["net", "use", address]
        if credential is not None:
            cmd += [credential.secret, f"/user:{credential.principal}"]
        cmd.append("/persistent:no")

        result = self._run(cmd, capture_output=True, text=True)
        if result.returncode != 0:
            raise net_use_error(address, _output(result))
        return UncMount(address=address)

    def unmount(self, handle: UncMount) -> None:
        result = self._run(
            ["net", "use", handle.address, "/delete", "/y"],
            capture_output=True,
            text=True,
        )
        if result.returncode != 0:
            raise net_use_error(handle.address, _output(result))


# =============================================================================
# POSIX: mount.cifs
# =============================================================================

_CIFS_PATTERNS: list[tuple[re.Pattern, type[ShareError]]] = [
    (re.compile(r"mount error\(13\)|permission denied|logon failure", re.I), AuthenticationError),
    (
        re.compile(
            r"mount error\((2|6|112|113|115)\)|host is down|no route to host"
            r"|could not resolve address|no such file or directory",
            re.I,
        ),
        NetworkUnreachable,
    ),
    (re.compile(r"already mounted|device or resource busy", re.I), AlreadyMounted),
    (re.compile(r"not mounted|no mount point specified", re.I), MountNotFound),
]


def cifs_error(address: str, output: str) -> ShareError:
    """Map mount.cifs / umount output to a ShareError subclass."""
    for pattern, error_cls in _CIFS_PATTERNS:
        if pattern.search(output):
            return error_cls(address, output)
    return ShareError(address, output or None)


@dataclass
class CifsMount:
    """A //host/share mounted at a local directory."""

    address: str
    mount_point: Path

    def resolve(self, remote_path: str) -> str:
        prefix = split_unc(self.address)
        parts = split_unc(remote_path)
        if [p.lower() for p in parts[: len(prefix)]] != [p.lower() for p in prefix]:
            raise ValueError(f"{remote_path} is not under {self.address}")
        return str(self.mount_point.joinpath(*parts[len(prefix):]))


class CifsShareMount:
    """Mount shares with `mount -t cifs` under a local root directory.

    The secret is handed to mount.cifs through the PASSWD environment
    variable so it never appears in the process list.
    """

    def __init__(
        self,
        mount_root: Path | None = None,
        runner: Runner = subprocess.run,
        is_mount: Callable[[Path], bool] = os.path.ismount,
    ):
        if mount_root is None:
            from rtbackup.paths import mounts_dir

            mount_root = mounts_dir()
        self.mount_root = Path(mount_root)
        self._run = runner
        self._is_mount = is_mount

    def mount(self, address: str, credential: Credential | None) -> CifsMount:
        parts = split_unc(address)
        if len(parts) < 2:
            raise ValueError(f"CIFS mounts need a share-qualified address, got {address}")
        host, share = parts[0], parts[1]
        mount_point = self.mount_root / host / share

        if self._is_mount(mount_point):
            raise AlreadyMounted(address, f"{mount_point} is already a mount point")
        mount_point.mkdir(parents=True, exist_ok=True)

        env = dict(os.environ)
        if credential is None:
            options = ["guest"]
        else:
            options = [f"username={credential.user}"]
            if credential.domain:
                options.append(f"domain={credential.domain}")
            env["PASSWD"] = credential.secret

        cmd = ["mount", "-t", "cifs", f"//{host}/{share}", str(mount_point), "-o", ",".join(options)]
        result = self._run(cmd, capture_output=True, text=True, env=env)
        if result.returncode != 0:
            with contextlib.suppress(OSError):
                mount_point.rmdir()
            raise cifs_error(address, _output(result))
        return CifsMount(address=f"\\\\{host}\\{share}", mount_point=mount_point)

    def unmount(self, handle: CifsMount) -> None:
        if not self._is_mount(handle.mount_point):
            raise MountNotFound(handle.address, f"{handle.mount_point} is not mounted")
        result = self._run(["umount", str(handle.mount_point)], capture_output=True, text=True)
        if result.returncode != 0:
            raise cifs_error(handle.address, _output(result))
        # Leave the directory if something else was created in it.
        with contextlib.suppress(OSError):
            handle.mount_point.rmdir()


def default_share_mount() -> RemoteShareMount:
    """Return the share mount backend for the running platform."""
    if sys.platform == "win32":
        return NetUseShareMount()
    return CifsShareMount()
