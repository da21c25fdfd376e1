"""
Implementation of programs provided by source code.
"""
import os
import shlex
import shutil
import logging
import subprocess

from .errors import ProgramError
from .program import Program, spawn, kill_tree, wait_exited

log = logging.getLogger(__name__)


class SourceCode(Program):
    """Class representing a program provided by source code.
    """
    def __init__(self, workspace, language, code, env=None, skip_memory_rlimit=False):
        """Instantiate SourceCode object

        Args:
            workspace (judgetools.run.Workspace): open workspace in
                which to save, compile and run the code.

            language (judgetools.languages.Language): language
                definition for the programming language of the code.

            code (str): the source code.

            env (dict): environment for compiling and running the
                program.

            skip_memory_rlimit (bool): do not apply a memory rlimit
                when running (see Program.should_skip_memory_rlimit).
        """
        super().__init__()
        self.language = language
        self.workspace = workspace
        self.path = str(workspace.path)
        self.env = env
        self._skip_memory_rlimit = skip_memory_rlimit

        self.mainfile = str(workspace.add_file(language.source_name, code))
        self.src = [self.mainfile]
        self.mainclass = os.path.splitext(os.path.basename(self.mainfile))[0]
        self.binary = os.path.join(self.path, 'run')

    def do_compile(self, timelim=None):
        """Compile the source code.

        Args:
            timelim (float): wall clock limit in seconds for the
                compiler, or None for no limit.

        Returns tuple:
            (True, None) if compilation succeeded
            (False, errmsg) otherwise

        Raises:
            ProgramError: if the compiler is not installed or could
                not be started.
        """
        if self.language.compile is None:
            return (True, None)

        command = self.get_compilecmd()
        compiler = shutil.which(command[0])
        if compiler is None:
            raise ProgramError('%s does not seem to be installed, no compiler %s'
                               % (self.language.name, os.path.basename(command[0])))

        log.debug('compile command: %s', command)

        logfile = os.path.join(self.path, 'compile.log')
        with open(logfile, 'wb') as output:
            proc = spawn(command, stdin=subprocess.DEVNULL, stdout=output,
                         stderr=subprocess.STDOUT, cwd=self.path, env=self.env)
            try:
                finished = wait_exited(proc, timelim)
            finally:
                kill_tree(proc)
        if not finished:
            return (False, 'compilation timed out after %g seconds' % timelim)

        if proc.returncode != 0:
            with open(logfile, 'rb') as f:
                return (False, f.read().decode('utf-8', 'replace'))
        return (True, None)

    def get_compilecmd(self):
        return shlex.split(self.language.compile.format(**self.__get_substitution()))

    def get_runcmd(self, memlim=1024):
        """Run command for the program.

        Args:
            memlim (int): if not None, memory limit in MB (only
                relevant for languages where memory limit is passed on
                command line)

        Raises:
            ProgramError: if the runtime of the language is not installed.
        """
        command = shlex.split(self.language.run.format(**self.__get_substitution(memlim)))
        if command and command[0] != self.binary and shutil.which(command[0]) is None:
            raise ProgramError('%s does not seem to be installed, no runtime %s'
                               % (self.language.name, os.path.basename(command[0])))
        return command

    def should_skip_memory_rlimit(self):
        return self._skip_memory_rlimit

    def __str__(self):
        """String representation"""
        return '%s (%s)' % (os.path.basename(self.mainfile), self.language.name)

    def __get_substitution(self, memlim=1024):
        return {
            'path': self.path,
            'files': ' '.join(self.src),
            'memlim': memlim if memlim is not None else 1024,
            'mainfile': self.mainfile,
            'mainclass': self.mainclass,
            'binary': self.binary,
        }
