import json
import logging
import os
import time
from types import SimpleNamespace

import pyinotify
import pytest

from f5_bigip_provider import bigipconfigdriver
from f5_bigip_provider.exceptions import ConfigError

DECLARATION = {
    'global': {'log-level': 'debug', 'verify-interval': 10},
    'bigip': {
        'url': 'https://10.190.24.171:8443',
        'username': 'admin',
        'password': 'secret',
    },
    'resources': [{
        'type': 'bigip_net_dns_resolver',
        'label': 'r1',
        'attributes': {'name': '/Common/r1',
                       'forward_zones': [{'name': 'example.com',
                                          'nameservers': ['1.1.1.1:53']}]},
    }],
}


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / 'config.json'
    path.write_text(json.dumps(DECLARATION))
    return str(path)


def test_handle_args_defaults_state_file(config_file):
    args = bigipconfigdriver._handle_args(['--config-file', config_file])

    assert args.config_file == os.path.realpath(config_file)
    assert args.state_file == os.path.join(
        os.path.dirname(args.config_file), 'bigip-state.json')
    assert args.import_target is None
    assert args.once is False


def test_handle_args_import(config_file):
    args = bigipconfigdriver._handle_args([
        '--config-file', config_file,
        '--import', 'bigip_net_dns_resolver.r1=/Common/r1'])
    assert args.import_target == ('bigip_net_dns_resolver.r1', '/Common/r1')

    with pytest.raises(ConfigError):
        bigipconfigdriver._handle_args(['--config-file', config_file,
                                        '--import', 'no-id'])


def test_handle_global_config():
    verify_interval, level = bigipconfigdriver._handle_global_config(
        DECLARATION)
    assert verify_interval == 10.0
    assert level == logging.DEBUG

    verify_interval, level = bigipconfigdriver._handle_global_config(
        {'global': {'log-level': 'chatty', 'verify-interval': -1}})
    assert verify_interval == bigipconfigdriver.DEFAULT_VERIFY_INTERVAL
    assert level == logging.INFO

    verify_interval, level = bigipconfigdriver._handle_global_config({})
    assert verify_interval == bigipconfigdriver.DEFAULT_VERIFY_INTERVAL
    assert level == logging.INFO


def test_handle_bigip_config():
    config = bigipconfigdriver._handle_bigip_config(DECLARATION)

    assert config == {
        'address': '10.190.24.171',
        'port': 8443,
        'username': 'admin',
        'password': 'secret',
        'token_auth': False,
        'validate_certs': False,
    }
    assert bigipconfigdriver._handle_bigip_config(
        {'bigip': {'url': 'https://bigip.example.com'}}) == {
        'address': 'bigip.example.com',
        'token_auth': False,
        'validate_certs': False,
    }


def test_bigip_config_without_port_uses_environment(monkeypatch, provider):
    monkeypatch.setenv('BIGIP_PORT', '8443')
    monkeypatch.setenv('BIGIP_PASSWORD', 'env-pass')
    calls = []

    def connect(host, username, password, **kwargs):
        calls.append((host, username, password, kwargs['port']))

    config = bigipconfigdriver._handle_bigip_config(
        {'bigip': {'url': 'https://bigip.example.com',
                   'username': 'admin'}})
    provider.configure(config, connect=connect)

    assert calls == [('bigip.example.com', 'admin', 'env-pass', 8443)]


@pytest.mark.parametrize('config', [
    {},
    {'bigip': {}},
    {'bigip': {'url': 'not a url'}},
])
def test_handle_bigip_config_errors(config):
    with pytest.raises(ConfigError):
        bigipconfigdriver._handle_bigip_config(config)


def test_state_file_round_trip(tmp_path):
    path = str(tmp_path / 'state.json')
    assert bigipconfigdriver.load_state(path) == {'version': 1,
                                                   'resources': {}}

    state = {'version': 1, 'resources': {'a.b': {'id': 'x'}}}
    bigipconfigdriver.save_state(path, state)
    bigipconfigdriver.save_state(path, {'version': 1, 'resources': {}})
    bigipconfigdriver.save_state(path, state)

    assert bigipconfigdriver.load_state(path) == state


def test_apply_config_writes_state(tmp_path, provider, bigip):
    path = str(tmp_path / 'state.json')

    incomplete = bigipconfigdriver.apply_config(DECLARATION, path, provider,
                                                bigip)

    assert incomplete == 0
    state = bigipconfigdriver.load_state(path)
    assert state['resources']['bigip_net_dns_resolver.r1']['id'] == \
        '/Common/r1'


def test_apply_config_counts_errors(tmp_path, provider, bigip, session):
    session.fail_next('post', 400, 'rejected')

    incomplete = bigipconfigdriver.apply_config(
        DECLARATION, str(tmp_path / 'state.json'), provider, bigip)

    assert incomplete == 1


def test_main_once(monkeypatch, config_file, bigip):
    connected = {}

    def fake_configure(self, config, user_agent=None):
        connected.update(config)
        connected['user_agent'] = user_agent
        return bigip

    monkeypatch.setattr('f5_bigip_provider.provider.Provider.configure',
                        fake_configure)

    assert bigipconfigdriver.main(['--config-file', config_file,
                                   '--once']) == 0

    assert connected['address'] == '10.190.24.171'
    assert connected['user_agent'].startswith('f5-bigip-provider-')
    state_file = os.path.join(os.path.dirname(config_file),
                              'bigip-state.json')
    state = bigipconfigdriver.load_state(state_file)
    assert 'bigip_net_dns_resolver.r1' in state['resources']

    assert bigipconfigdriver.main([
        '--config-file', config_file,
        '--import', 'bigip_net_dns_resolver.copy=/Common/r1']) == 0
    state = bigipconfigdriver.load_state(state_file)
    assert state['resources']['bigip_net_dns_resolver.copy']['id'] == \
        '/Common/r1'


def test_main_exits_on_config_error(tmp_path):
    path = tmp_path / 'config.json'
    path.write_text(json.dumps({'resources': []}))

    with pytest.raises(SystemExit) as exc:
        bigipconfigdriver.main(['--config-file', str(path), '--once'])
    assert exc.value.code == 1


def test_interval_timer_rejects_bad_arguments():
    with pytest.raises(bigipconfigdriver.IntervalTimerError):
        bigipconfigdriver.IntervalTimer(0, lambda: None)
    with pytest.raises(bigipconfigdriver.IntervalTimerError):
        bigipconfigdriver.IntervalTimer(1, None)


def test_password_filter():
    record = logging.LogRecord('x', logging.INFO, __file__, 1,
                               '{"password": "secret"}', None, None)
    assert not bigipconfigdriver.PasswordFilter().filter(record)
    record.msg = 'RESPONSE::STATUS: 200'
    assert not bigipconfigdriver.ResponseStatusFilter().filter(record)


@pytest.fixture
def timers(monkeypatch):
    """Replace threading.Timer with one that only records what it is given."""
    created = []

    class RecordingTimer(object):
        def __init__(self, interval, function):
            self.interval = interval
            self.function = function
            self.daemon = False
            self.started = False
            self.cancelled = False
            created.append(self)

        def start(self):
            self.started = True

        def cancel(self):
            self.cancelled = True

        def join(self):
            pass

    monkeypatch.setattr(bigipconfigdriver.threading, 'Timer', RecordingTimer)
    return created


def _wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError('condition not reached in time')
        time.sleep(0.01)


def test_interval_timer_reschedules_itself(timers):
    calls = []

    def cb():
        calls.append(1)
        raise RuntimeError('boom')

    interval = bigipconfigdriver.IntervalTimer(5, cb)
    interval.start()
    assert interval.is_running()
    assert timers[0].interval == 5.0
    assert timers[0].started

    timers[0].function()

    assert calls == [1]
    assert len(timers) == 2
    assert 4.0 < timers[1].interval <= 5.0
    assert timers[1].started

    interval.stop()
    assert timers[1].cancelled
    assert not interval.is_running()


def test_retry_backoff_doubles_up_to_limit(timers, tmp_path, provider,
                                           bigip, config_file):
    handler = bigipconfigdriver.ConfigHandler(
        config_file, str(tmp_path / 'state.json'), provider, bigip, 0)
    try:
        for _ in range(10):
            handler.retry_backoff()
            handler._backoff_timer = None
    finally:
        handler.stop()

    assert [t.interval for t in timers] == [1, 2, 4, 8, 16, 32, 64, 128,
                                            128, 128]
    assert all(t.started for t in timers)


def test_handler_backs_off_then_recovers(monkeypatch, timers, tmp_path,
                                         provider, bigip, config_file):
    results = [1, 1, 0]
    applied = []

    def fake_apply_config(config, state_file, provider, bigip):
        applied.append(config)
        return results[len(applied) - 1]

    monkeypatch.setattr(bigipconfigdriver, 'apply_config', fake_apply_config)
    handler = bigipconfigdriver.ConfigHandler(
        config_file, str(tmp_path / 'state.json'), provider, bigip, 10)
    try:
        handler.notify_reset()
        _wait_for(lambda: handler._backoff_time == 2)
        assert timers[0].interval == 1
        assert not handler._interval.is_running()

        timers[0].function()
        _wait_for(lambda: handler._backoff_time == 4)
        assert timers[1].interval == 2

        timers[1].function()
        _wait_for(lambda: handler._backoff_time == 1)
        assert handler._interval.is_running()
        assert handler._backoff_timer is None
        # the verify interval timer
        assert timers[2].interval == 10.0
        assert len(applied) == 3
        assert applied[0]['bigip']['username'] == 'admin'
    finally:
        handler.stop()

    assert timers[2].cancelled


def test_watcher_reports_content_changes_only(monkeypatch, config_file):
    monkeypatch.setattr(bigipconfigdriver.signal, 'signal',
                        lambda signum, handler: None)
    changes = []
    watcher = bigipconfigdriver.ConfigWatcher(config_file,
                                              lambda: changes.append(1))

    def event(pathname, mask=pyinotify.IN_CLOSE_WRITE):
        return SimpleNamespace(pathname=pathname, mask=mask)

    watcher.process_default(event(config_file))
    assert changes == []

    with open(config_file, 'w') as f:
        json.dump(dict(DECLARATION, resources=[]), f)
    watcher.process_default(event(config_file))
    assert changes == [1]

    watcher.process_default(event(config_file))
    watcher.process_default(event(config_file + '.swp'))
    assert changes == [1]

    watcher.process_default(event(os.path.dirname(config_file),
                                  mask=pyinotify.IN_DELETE_SELF))
    assert changes == [1, 1]
    assert watcher._polling
