"""Abstract base class for programs.
"""
import logging
import os
import signal
import subprocess
import threading
import time
from dataclasses import dataclass

from . import limit
from .errors import ProgramError

log = logging.getLogger(__name__)

_POLL_INTERVAL = 0.005


@dataclass
class RunResult:
    """Raw result of running a program.

    status is the return code as reported by subprocess, i.e. negative
    if the process was terminated by a signal.
    """
    status: int
    runtime: float
    timed_out: bool
    stdout: str
    stderr: str
    output_limit_hit: bool = False

    @property
    def signal(self) -> int | None:
        return -self.status if self.status < 0 else None


class Program(object):
    """Abstract base class for programs.
    """

    def __init__(self) -> None:
        self.runtime = 0.0
        self.path: str | None = None
        self.env: dict[str, str] | None = None
        self._compile_lock = threading.Lock()
        self._compile_result: tuple[bool, str|None]|None = None

    def run(self, infile, outfile, errfile, timelim=5.0, memlim=1024,
            output_limit=None):
        """Run the program.

        The program runs in its own session, so that it and everything
        it spawns can be killed together.  When timelim seconds of wall
        clock time have passed the whole process group is killed.

        Args:
            infile (str): name of file to pass on stdin
            outfile (str): name of file to send stdout to
            errfile (str): name of file to send stderr to
            timelim (float): wall clock time limit in seconds
            memlim (int): memory limit in MB
            output_limit (int): limit in bytes on the size of outfile
                and errfile

        Returns:
            RunResult of the run, with stdout and stderr read back
            from outfile and errfile (at most output_limit bytes each).

        Raises:
            ProgramError: if the program could not be started.
        """
        runcmd = self.get_runcmd(memlim=memlim)
        if runcmd == []:
            raise ProgramError('Could not figure out how to run %s' % self)
        if self.should_skip_memory_rlimit():
            memlim = None

        status, runtime, timed_out = self.__run_wait(runcmd, infile, outfile, errfile,
                                                     timelim, memlim, output_limit,
                                                     self.path, self.env)
        self.runtime = max(self.runtime, runtime)

        return RunResult(status=status, runtime=runtime, timed_out=timed_out,
                         stdout=_read_limited(outfile, output_limit),
                         stderr=_read_limited(errfile, output_limit),
                         output_limit_hit=_reached(outfile, output_limit) or _reached(errfile, output_limit))

    def compile(self, timelim=None) -> tuple[bool, str|None]:
        with self._compile_lock:
            if self._compile_result is None:
                self._compile_result = self.do_compile(timelim)
            return self._compile_result

    def do_compile(self, timelim=None) -> tuple[bool, str|None]:
        """Actually compile the program, if needed. Subclasses should override this method.
        Do not call this manually -- use compile() instead."""
        return (True, None)

    def get_runcmd(self, memlim=1024) -> list[str]:
        raise NotImplementedError

    def should_skip_memory_rlimit(self) -> bool:
        """The JVM will crash and burn if there is a memory rlimit
        applied, see e.g. https://bugs.openjdk.java.net/browse/JDK-8071445

        Node.js likewise reserves far more address space than it
        uses.  Subclasses of Program that may run such a runtime need to
        override this method and return True.
        """
        return False

    @staticmethod
    def __run_wait(argv, infile, outfile, errfile, timelim, memlim, output_limit,
                   working_directory=None, env=None):
        log.debug('run "%s < %s > %s 2> %s"',
                  ' '.join(argv), infile, outfile, errfile)
        with open(infile, 'rb') as fin, open(outfile, 'wb') as fout, open(errfile, 'wb') as ferr:
            start = time.monotonic()
            proc = spawn(argv, stdin=fin, stdout=fout, stderr=ferr, cwd=working_directory, env=env,
                         preexec_fn=limit.limiter(timelim, memlim, output_limit))
            try:
                timed_out = not wait_exited(proc, timelim)
            finally:
                # Also kills anything the program left running in the background.
                kill_tree(proc)
            runtime = time.monotonic() - start
        return proc.returncode, runtime, timed_out


def spawn(argv, **kwargs) -> subprocess.Popen:
    """Start argv as the leader of a new process group.

    Raises:
        ProgramError: if the process could not be started.
    """
    try:
        return subprocess.Popen(argv, start_new_session=True, **kwargs)
    except OSError as exc:
        raise ProgramError('could not start %s: %s' % (os.path.basename(argv[0]), exc.strerror)) from exc


def wait_exited(proc: subprocess.Popen, timeout=None) -> bool:
    """Wait for proc to exit, without reaping it.

    Until it is reaped the pid of proc, and so the id of its process
    group, cannot be taken by another process.  Reap it with
    kill_tree().

    Returns:
        False if timeout seconds passed before proc exited.
    """
    deadline = None if timeout is None else time.monotonic() + timeout
    while os.waitid(os.P_PID, proc.pid, os.WEXITED | os.WNOWAIT | os.WNOHANG) is None:
        if deadline is not None and time.monotonic() >= deadline:
            return False
        time.sleep(_POLL_INTERVAL)
    return True


def kill_tree(proc: subprocess.Popen) -> None:
    """SIGKILL the process group led by proc and reap proc.

    proc must not have been reaped yet (see wait_exited()).
    """
    if proc.returncode is None:
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
    proc.wait()


def _read_limited(filename, output_limit=None) -> str:
    with open(filename, 'rb') as f:
        data = f.read(-1 if output_limit is None else output_limit)
    return data.decode('utf-8', 'replace')


def _reached(filename, output_limit=None) -> bool:
    # RLIMIT_FSIZE stops the file one byte past the limit.
    return output_limit is not None and os.path.getsize(filename) > output_limit
