import os

import pytest

from judgetools import config

HERE = os.path.dirname(__file__)


@pytest.fixture
def dirs(monkeypatch):
    paths = [os.path.join(HERE, 'config1'), os.path.join(HERE, 'config2')]
    monkeypatch.setattr(config, '__config_dirs', lambda: paths)


def test_base_only(dirs):
    assert config.load_config('test.yaml') == {'prop1': 'hello', 'prop2': 5}


def test_later_dirs_override(dirs):
    assert config.load_config('test2.yaml') == {'prop1': 'abc', 'prop2': 23, 'prop3': ['hello', 'world']}


def test_priority_dirs_override(dirs, tmp_path):
    (tmp_path / 'test2.yaml').write_text('prop2: 99\n')
    assert config.load_config('test2.yaml', [tmp_path]) == {'prop1': 'abc', 'prop2': 99,
                                                            'prop3': ['hello', 'world']}


def test_missing_base(dirs, tmp_path):
    (tmp_path / 'only_here.yaml').write_text('a: 1\n')
    with pytest.raises(config.ConfigError):
        config.load_config('only_here.yaml', [tmp_path])
    with pytest.raises(config.ConfigError):
        config.load_config('non_existent_file')


def test_broken(dirs):
    with pytest.raises(config.ConfigError):
        config.load_config('broken.yaml')


def test_empty_override_is_ignored(dirs, tmp_path):
    (tmp_path / 'test.yaml').write_text('# nothing here\n')
    assert config.load_config('test.yaml', [tmp_path]) == {'prop1': 'hello', 'prop2': 5}


def test_user_dir(monkeypatch, tmp_path):
    monkeypatch.setenv('XDG_CONFIG_HOME', str(tmp_path))
    user = tmp_path / 'judgetools'
    user.mkdir()
    (user / 'judge.yaml').write_text('deadline: 9\n')
    assert config.load_config('judge.yaml')['deadline'] == 9


def test_merge():
    merge = config.__dict__['__merge']

    languages = {'cpp': {'name': 'C++', 'priority': 1000, 'run': '{binary}'}, 'python': {'name': 'Python 3'}}
    merge(languages, {'cpp': {'run': '/opt/run {binary}'}})
    assert languages == {'cpp': {'name': 'C++', 'priority': 1000, 'run': '/opt/run {binary}'},
                         'python': {'name': 'Python 3'}}

    merge(languages, {'python': 'disabled', 'java': {'name': 'Java'}})
    assert languages['python'] == 'disabled'
    assert languages['java'] == {'name': 'Java'}
