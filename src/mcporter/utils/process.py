"""
Process lifecycle helpers.

A :class:`ProcessScope` is opened by the top-level CLI invocation and, on
release, terminates any child processes (stdio MCP servers and their
descendants) that are still alive after the runtime closed. The CLI then
forces the interpreter to exit so no lingering handle keeps it alive.
"""

import os
import sys
from typing import List, Optional, Set

import psutil

from mcporter.utils.logging import LogContext


class ProcessScope:
    """Scoped registry of child processes spawned during one invocation."""
    
    def __init__(self, log: Optional[LogContext] = None, grace_period: float = 1.0):
        self.log = log or LogContext.silent()
        self.grace_period = grace_period
        self._process = psutil.Process()
        self._baseline: Set[int] = {child.pid for child in self._children()}
        self._released = False
        
    def __enter__(self) -> "ProcessScope":
        return self
    
    def __exit__(self, *exc_info) -> None:
        self.release("scope exit")
        
    @property
    def released(self) -> bool:
        return self._released
    
    def _children(self) -> List[psutil.Process]:
        try:
            return self._process.children(recursive=True)
        except psutil.Error:
            return []
        
    def tracked_children(self) -> List[psutil.Process]:
        """Children started since the scope was opened."""
        return [child for child in self._children() if child.pid not in self._baseline]
    
    def release(self, reason: str = "release") -> List[int]:
        """
        Terminate tracked children, killing those that ignore SIGTERM.
        
        Returns:
            PIDs that were signalled
        """
        if self._released:
            return []
        self._released = True
        children = self.tracked_children()
        if not children:
            return []
        self.log.debug(f"[{reason}] terminating {len(children)} child process(es)")
        for child in children:
            try:
                child.terminate()
            except psutil.NoSuchProcess:
                continue
        _, alive = psutil.wait_procs(children, timeout=self.grace_period)
        for child in alive:
            try:
                child.kill()
            except psutil.NoSuchProcess:
                continue
        return [child.pid for child in children]
    
    def describe_children(self) -> str:
        """One line per tracked child, for hang diagnostics."""
        lines = []
        for child in self.tracked_children():
            try:
                lines.append(f"{child.pid} {' '.join(child.cmdline())}")
            except psutil.Error:
                lines.append(str(child.pid))
        return "\n".join(lines) or "(none)"


def force_exit(exit_code: int) -> None:
    """Flush standard streams and terminate the interpreter immediately."""
    for stream in (sys.stdout, sys.stderr):
        try:
            stream.flush()
        except (OSError, ValueError):
            pass
    os._exit(exit_code)
