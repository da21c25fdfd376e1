import os
import shlex
import signal
import sys
import time

import pytest

from judgetools import languages
from judgetools.run import (CppRunner, ExecutionOutcome, JavaRunner, NodeRunner, OutcomeKind, PythonRunner,
                            RUNNER_CLASSES)
from judgetools.run.program import RunResult
from judgetools.run import program, workspace
from judgetools.run.workspace import Workspace
from judgetools.settings import JudgeSettings

ADD = '''\
a, b = map(int, input().split())
print(a + b)
'''


def python_language(python=sys.executable):
    return languages.Language('python', {'name': 'Python 3',
                                         'priority': 850,
                                         'files': 'solution.py *.py',
                                         'run': '%s {mainfile}' % shlex.quote(python)})


@pytest.fixture
def python_runner(tmp_path):
    return PythonRunner(python_language(), JudgeSettings(deadline=5, output_limit=1000), str(tmp_path))


@pytest.fixture
def default_languages(monkeypatch, tmp_path_factory):
    monkeypatch.setenv('XDG_CONFIG_HOME', str(tmp_path_factory.mktemp('xdg')))
    return languages.load_language_config()


def test_python_add(python_runner, tmp_path):
    outcome = python_runner.execute(ADD, '3 4\n')
    assert outcome.kind == OutcomeKind.SUCCESS
    assert outcome.output.strip() == '7'
    assert outcome.exit_code == 0
    assert os.listdir(tmp_path) == []


def test_python_timeout(python_runner):
    start = time.monotonic()
    outcome = python_runner.execute('while True:\n    pass\n', '', deadline=1)
    assert outcome.kind == OutcomeKind.TIMEOUT
    assert time.monotonic() - start < 4


def _alive(pid):
    """Whether pid exists and is not a zombie."""
    try:
        with open(f'/proc/{pid}/stat') as f:
            return f.read().rsplit(')', 1)[1].split()[0] != 'Z'
    except FileNotFoundError:
        return False


def test_python_timeout_kills_children(python_runner, tmp_path_factory):
    pidfile = tmp_path_factory.mktemp('pids') / 'child.pid'
    code = ('import subprocess, time\n'
            'child = subprocess.Popen(["sleep", "30"])\n'
            f'with open({str(pidfile)!r}, "w") as f:\n'
            '    f.write(str(child.pid))\n'
            'time.sleep(30)\n')
    start = time.monotonic()
    outcome = python_runner.execute(code, '', deadline=1)
    assert outcome.kind == OutcomeKind.TIMEOUT
    assert time.monotonic() - start < 4

    pid = int(pidfile.read_text())
    for _ in range(100):
        if not _alive(pid):
            break
        time.sleep(0.01)
    assert not _alive(pid)


def test_python_background_child_killed_on_exit(python_runner, tmp_path_factory):
    pidfile = tmp_path_factory.mktemp('pids') / 'child.pid'
    code = ('import subprocess\n'
            'child = subprocess.Popen(["sleep", "30"], stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)\n'
            f'with open({str(pidfile)!r}, "w") as f:\n'
            '    f.write(str(child.pid))\n'
            'print(7)\n')
    outcome = python_runner.execute(code, '')
    assert outcome.kind == OutcomeKind.SUCCESS
    assert outcome.output.strip() == '7'

    pid = int(pidfile.read_text())
    for _ in range(100):
        if not _alive(pid):
            break
        time.sleep(0.01)
    assert not _alive(pid)


def test_python_killed_by_signal(python_runner):
    outcome = python_runner.execute('import os, signal\nos.kill(os.getpid(), signal.SIGKILL)\n', '')
    assert outcome.kind == OutcomeKind.RUNTIME_ERROR
    assert 'SIGKILL' in outcome.diagnostics


def test_python_nonzero_exit_is_judged(python_runner):
    outcome = python_runner.execute('print(7)\nraise SystemExit(3)\n', '')
    assert outcome.kind == OutcomeKind.SUCCESS
    assert outcome.output.strip() == '7'
    assert outcome.exit_code == 3


def test_python_exception_diagnostics(python_runner):
    outcome = python_runner.execute('print(7)\nraise ValueError("oops")\n', '')
    assert outcome.kind == OutcomeKind.SUCCESS
    assert outcome.exit_code == 1
    assert 'ValueError: oops' in outcome.diagnostics


def test_python_output_limit(python_runner):
    outcome = python_runner.execute('print("x" * 100000)\n', '')
    assert outcome.kind == OutcomeKind.RUNTIME_ERROR
    assert outcome.diagnostics == 'output limit exceeded'


def test_python_output_at_limit(python_runner):
    outcome = python_runner.execute('import sys\nsys.stdout.write("x" * 1000)\n', '')
    assert outcome.kind == OutcomeKind.SUCCESS
    assert outcome.output == 'x' * 1000


def test_python_output_just_over_limit(python_runner):
    outcome = python_runner.execute('import sys\nsys.stdout.write("x" * 1001)\n', '')
    assert outcome.kind == OutcomeKind.RUNTIME_ERROR
    assert outcome.diagnostics == 'output limit exceeded'


def test_python_locks_its_workspace(python_runner, tmp_path):
    code = ('import os\n'
            'os.makedirs("d/e")\n'
            'os.chmod("d/e", 0o500)\n'
            'os.chmod("d", 0o500)\n'
            'os.makedirs("locked")\n'
            'os.chmod("locked", 0)\n'
            'print(7)\n')
    outcome = python_runner.execute(code, '')
    assert outcome.kind == OutcomeKind.SUCCESS
    assert outcome.output.strip() == '7'
    assert os.listdir(tmp_path) == []


def test_workspace_removal_failure_keeps_verdict(python_runner, monkeypatch):
    def fail(root):
        raise PermissionError(13, 'Permission denied', str(root))

    monkeypatch.setattr(workspace, '_remove_tree', fail)
    outcome = python_runner.execute(ADD, '3 4\n')
    assert outcome.kind == OutcomeKind.SUCCESS
    assert outcome.output.strip() == '7'


def test_python_does_not_see_judge_environment(python_runner, monkeypatch):
    monkeypatch.setenv('JUDGE_SECRET', 'hunter2')
    outcome = python_runner.execute('import os\nprint(os.environ.get("JUDGE_SECRET", "none"))\n', '')
    assert outcome.output.strip() == 'none'


def test_missing_runtime(tmp_path):
    runner = PythonRunner(python_language('/nonexistent/python3'), JudgeSettings(), str(tmp_path))
    outcome = runner.execute(ADD, '3 4\n')
    assert outcome.kind == OutcomeKind.INFRASTRUCTURE_ERROR
    assert 'python3' in outcome.diagnostics
    assert os.listdir(tmp_path) == []


def test_unusable_workspace(tmp_path):
    runner = PythonRunner(python_language(), JudgeSettings(), str(tmp_path / 'missing'))
    outcome = runner.execute(ADD, '3 4\n')
    assert outcome.kind == OutcomeKind.INFRASTRUCTURE_ERROR


def test_wrong_language():
    with pytest.raises(ValueError):
        CppRunner(python_language())


def test_runner_classes():
    assert set(RUNNER_CLASSES) == set(languages.LanguageId)
    for lang_id, cls in RUNNER_CLASSES.items():
        assert cls.lang_id == lang_id


def test_wait_exited_leaves_leader_unreaped():
    proc = program.spawn([sys.executable, '-c', 'pass'])
    assert program.wait_exited(proc, 10)
    assert proc.returncode is None
    assert os.waitid(os.P_PID, proc.pid, os.WEXITED | os.WNOWAIT | os.WNOHANG) is not None
    program.kill_tree(proc)
    assert proc.returncode == 0


def test_wait_exited_timeout():
    proc = program.spawn(['sleep', '30'])
    try:
        assert not program.wait_exited(proc, 0.1)
    finally:
        program.kill_tree(proc)
    assert proc.returncode == -signal.SIGKILL


def fake_cpp(compile_code):
    return languages.Language('cpp', {'name': 'C++',
                                      'priority': 1000,
                                      'files': 'solution.cpp',
                                      'compile': '%s -c %s {files}' % (shlex.quote(sys.executable),
                                                                       shlex.quote(compile_code)),
                                      'run': '{binary}'})


def test_compiler_output(tmp_path):
    runner = CppRunner(fake_cpp('import sys; sys.exit("broken " + sys.argv[1])'), JudgeSettings(), str(tmp_path))
    outcome = runner.execute('int main() {}\n', '')
    assert outcome.kind == OutcomeKind.COMPILE_ERROR
    assert outcome.diagnostics.strip() == 'broken solution.cpp'
    assert os.listdir(tmp_path) == []


def test_compile_timeout(tmp_path):
    runner = CppRunner(fake_cpp('import time; time.sleep(30)'), JudgeSettings(compile_timeout=0.5), str(tmp_path))
    start = time.monotonic()
    outcome = runner.execute('int main() {}\n', '')
    assert outcome.kind == OutcomeKind.COMPILE_ERROR
    assert 'timed out' in outcome.diagnostics
    assert time.monotonic() - start < 5


def _result(status=0, timed_out=False, stdout='', stderr='', output_limit_hit=False):
    return RunResult(status=status, runtime=0.1, timed_out=timed_out, stdout=stdout, stderr=stderr,
                     output_limit_hit=output_limit_hit)


def test_interpret(python_runner, tmp_path):
    with Workspace(parent=str(tmp_path)) as ws:
        interpret = python_runner.interpret
        assert interpret(_result(stdout='7\n'), ws) == ExecutionOutcome.success('7\n', runtime=0.1)
        assert interpret(_result(status=-signal.SIGKILL, timed_out=True), ws).kind == OutcomeKind.TIMEOUT
        assert interpret(_result(status=-signal.SIGXCPU), ws).kind == OutcomeKind.TIMEOUT
        assert interpret(_result(status=-signal.SIGXFSZ), ws).diagnostics == 'output limit exceeded'
        assert interpret(_result(status=1, output_limit_hit=True), ws).kind == OutcomeKind.RUNTIME_ERROR

        crash = interpret(_result(status=-signal.SIGSEGV, stderr=f'{ws.path}/solution.py crashed'), ws)
        assert crash.kind == OutcomeKind.RUNTIME_ERROR
        assert crash.diagnostics == 'solution.py crashed'
        assert interpret(_result(status=-signal.SIGSEGV), ws).diagnostics == 'terminated by SIGSEGV'


def _skip_without(*programs):
    missing = [p for p in programs if not os.path.exists(p)]
    return pytest.mark.skipif(bool(missing), reason=f'{", ".join(missing)} not installed')


@_skip_without('/usr/bin/g++')
def test_cpp_add(default_languages, tmp_path):
    runner = CppRunner(default_languages.get('cpp'), JudgeSettings(), str(tmp_path))
    code = '#include <iostream>\nint main() { int a, b; std::cin >> a >> b; std::cout << a + b << std::endl; }\n'
    outcome = runner.execute(code, '3 4\n')
    assert outcome.kind == OutcomeKind.SUCCESS
    assert outcome.output.strip() == '7'


@_skip_without('/usr/bin/g++')
def test_cpp_compile_error(default_languages, tmp_path):
    runner = CppRunner(default_languages.get('cpp'), JudgeSettings(), str(tmp_path))
    outcome = runner.execute('int main( {\n', '3 4\n')
    assert outcome.kind == OutcomeKind.COMPILE_ERROR
    assert outcome.diagnostics
    assert str(tmp_path) not in outcome.diagnostics
    assert os.listdir(tmp_path) == []


@_skip_without('/usr/bin/g++')
def test_cpp_segfault(default_languages, tmp_path):
    runner = CppRunner(default_languages.get('cpp'), JudgeSettings(), str(tmp_path))
    code = '#include <csignal>\nint main() { std::raise(SIGSEGV); return 0; }\n'
    outcome = runner.execute(code, '')
    assert outcome.kind == OutcomeKind.RUNTIME_ERROR


@_skip_without('/usr/bin/javac', '/usr/bin/java')
def test_java_add(default_languages, tmp_path):
    runner = JavaRunner(default_languages.get('java'), JudgeSettings(), str(tmp_path))
    code = '''\
import java.util.Scanner;

public class Solution {
    public static void main(String[] args) {
        Scanner in = new Scanner(System.in);
        System.out.println(in.nextInt() + in.nextInt());
    }
}
'''
    outcome = runner.execute(code, '3 4\n', deadline=10)
    assert outcome.kind == OutcomeKind.SUCCESS
    assert outcome.output.strip() == '7'


@_skip_without('/usr/bin/javac', '/usr/bin/java')
def test_java_wrong_class_name(default_languages, tmp_path):
    runner = JavaRunner(default_languages.get('java'), JudgeSettings(), str(tmp_path))
    outcome = runner.execute('class Main { public static void main(String[] a) {} }\n', '')
    assert outcome.kind == OutcomeKind.COMPILE_ERROR
    assert 'Solution' in outcome.diagnostics


@_skip_without('/usr/bin/node')
def test_node_add(default_languages, tmp_path):
    runner = NodeRunner(default_languages.get('nodejs'), JudgeSettings(), str(tmp_path))
    code = '''\
const lines = require('fs').readFileSync(0, 'utf8').trim().split(/\\s+/).map(Number);
console.log(lines[0] + lines[1]);
'''
    outcome = runner.execute(code, '3 4\n')
    assert outcome.kind == OutcomeKind.SUCCESS
    assert outcome.output.strip() == '7'
