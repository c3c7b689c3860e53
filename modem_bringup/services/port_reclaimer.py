"""
Port Reclaimer - Release a device path held open by other processes
Leftover readers (cat, minicom, a previous probe, ModemManager) keep the
tty open and make every later read block or return nothing.
"""

import logging
import os
from typing import Iterable, Iterator, List

import psutil

logger = logging.getLogger(__name__)


class PortReclaimer:
    """
    Best-effort 'fuser -k' equivalent built on psutil.

    Holders are found through the /proc/<pid>/fd links: psutil's
    open_files() lists regular files only, never character devices.
    """

    TERMINATE_TIMEOUT = 2.0

    def __init__(self, own_pid: int = None, proc_root: str = "/proc"):
        self.own_pid = own_pid if own_pid is not None else os.getpid()
        self.proc_root = proc_root

    def _open_paths(self, pid: int) -> Iterator[str]:
        fd_dir = os.path.join(self.proc_root, str(pid), "fd")
        for fd in os.listdir(fd_dir):
            try:
                yield os.readlink(os.path.join(fd_dir, fd))
            except OSError:
                # fd closed while listing
                continue

    def find_holders(self, path: str) -> List[psutil.Process]:
        """Processes (other than ourselves) with the path open"""
        target = os.path.realpath(path)
        holders = []
        for pid in psutil.pids():
            if pid == self.own_pid:
                continue
            try:
                if any(p in (path, target) for p in self._open_paths(pid)):
                    holders.append(psutil.Process(pid))
            except (OSError, psutil.NoSuchProcess, psutil.AccessDenied):
                continue
        return holders

    def reclaim(self, path: str) -> int:
        """
        Terminate every holder of path, escalating to kill.

        Returns the number of processes that were stopped.
        """
        holders = self.find_holders(path)
        if not holders:
            return 0

        for proc in holders:
            logger.info(f"Releasing {path}: terminating pid {proc.pid}")
            try:
                proc.terminate()
            except (psutil.NoSuchProcess, psutil.AccessDenied) as e:
                logger.warning(f"Could not terminate pid {proc.pid}: {e}")

        _, alive = psutil.wait_procs(holders, timeout=self.TERMINATE_TIMEOUT)
        for proc in alive:
            try:
                proc.kill()
            except (psutil.NoSuchProcess, psutil.AccessDenied) as e:
                logger.warning(f"Could not kill pid {proc.pid}: {e}")

        return len(holders)


def _matches(info: dict, names: tuple) -> bool:
    """Process name, or the executable basename from argv[0]"""
    if info.get("name") in names:
        return True
    cmdline = info.get("cmdline") or []
    return bool(cmdline) and os.path.basename(cmdline[0]) in names


def kill_processes_by_name(names: Iterable[str], own_pid: int = None) -> List[int]:
    """'pkill -x' equivalent: kill processes whose name or executable matches exactly"""
    own_pid = own_pid if own_pid is not None else os.getpid()
    names = tuple(names)
    killed = []

    for proc in psutil.process_iter(["pid", "name", "cmdline"]):
        if proc.pid == own_pid:
            continue
        try:
            if _matches(proc.info, names):
                proc.kill()
                killed.append(proc.pid)
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess) as e:
            logger.debug(f"Skipping pid {proc.pid}: {e}")

    return killed
