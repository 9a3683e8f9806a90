#!/usr/bin/env python

# Copyright (c) 2024 F5 Networks, Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.


import argparse
import fcntl
import hashlib
import json
import logging
import os
import os.path
import signal
import sys
import threading
import time
import traceback

import pyinotify

from urllib.parse import urlparse

from f5_bigip_provider import __version__
from f5_bigip_provider.exceptions import ConfigError, has_error
from f5_bigip_provider.plan import apply, empty_state, import_resource
from f5_bigip_provider.provider import Provider

log = logging.getLogger(__name__)
console = logging.StreamHandler()
console.setFormatter(
    logging.Formatter("[%(asctime)s %(name)s %(levelname)s] %(message)s"))
root_logger = logging.getLogger()
root_logger.addHandler(console)


class ResponseStatusFilter(logging.Filter):
    def filter(self, record):
        return not record.getMessage().startswith("RESPONSE::STATUS")


class PasswordFilter(logging.Filter):
    def filter(self, record):
        return '"password"' not in record.getMessage()


console.addFilter(ResponseStatusFilter())
console.addFilter(PasswordFilter())


DEFAULT_LOG_LEVEL = logging.INFO
DEFAULT_VERIFY_INTERVAL = 30.0
DEFAULT_STATE_FILE_NAME = 'bigip-state.json'


class IntervalTimerError(Exception):
    def __init__(self, msg):
        Exception.__init__(self, msg)


class IntervalTimer(object):
    """Calls cb every interval seconds, less the time cb itself took."""

    def __init__(self, interval, cb):
        interval = float(interval)
        if interval <= 0:
            raise IntervalTimerError("interval must be greater than 0")
        if not callable(cb):
            raise IntervalTimerError("cb must be callable object")

        self._cb = cb
        self._interval = interval
        self._last_run = 0.0
        self._running = False
        self._timer = None
        self._lock = threading.RLock()

    def _next_delay(self):
        delay = max(self._interval - self._last_run, 0.0)
        self._last_run = 0.0
        return delay

    def _run(self):
        start_time = time.monotonic()
        try:
            self._cb()
        except Exception as e:
            log.exception(f'Unexpected error: {str(e)}')
        finally:
            with self._lock:
                self._last_run = max(time.monotonic() - start_time, 0.0)
                if self._running:
                    self.start()

    def is_running(self):
        return self._running

    def start(self):
        with self._lock:
            if self._running:
                self.stop()
            self._timer = threading.Timer(self._next_delay(), self._run)
            # cancelled daemon timers exit on their own, no join needed
            self._timer.daemon = True
            self._timer.start()
            self._running = True

    def stop(self):
        with self._lock:
            if self._running:
                self._timer.cancel()
                self._timer = None
                self._running = False


def load_state(state_file):
    """Read the state file; a missing file is an empty state."""
    if not os.path.exists(state_file):
        return empty_state()
    with open(state_file, 'r') as f:
        fcntl.lockf(f.fileno(), fcntl.LOCK_SH, 0, 0, 0)
        data = f.read()
        fcntl.lockf(f.fileno(), fcntl.LOCK_UN, 0, 0, 0)
    if not data.strip():
        return empty_state()
    return json.loads(data)


def save_state(state_file, state):
    with open(state_file, 'a+') as f:
        fcntl.lockf(f.fileno(), fcntl.LOCK_EX, 0, 0, 0)
        f.seek(0)
        f.truncate()
        json.dump(state, f, indent=2, sort_keys=True)
        f.flush()
        fcntl.lockf(f.fileno(), fcntl.LOCK_UN, 0, 0, 0)
    log.debug('saved state file %s', state_file)


def apply_config(config, state_file, provider, bigip):
    """Apply the declaration in config and persist the resulting state.

    Returns:
        number of error diagnostics
    """
    state = load_state(state_file)
    new_state, diags = apply(provider, bigip, config, state)
    save_state(state_file, new_state)
    errors = [d for d in diags if d.is_error()]
    for diag in diags:
        if not diag.is_error():
            log.warning('%s', diag)
    return len(errors)


class ConfigHandler():
    def __init__(self, config_file, state_file, provider, bigip,
                 verify_interval):
        self._config_file = config_file
        self._state_file = state_file
        self._provider = provider
        self._bigip = bigip

        self._condition = threading.Condition()
        self._thread = threading.Thread(target=self._do_reset)
        self._pending_reset = False
        self._stop = False
        self._backoff_time = 1
        self._backoff_timer = None
        self._max_backoff_time = 128

        self._verify_interval = verify_interval
        self._interval = None
        if verify_interval > 0:
            self._interval = IntervalTimer(self._verify_interval,
                                           self.notify_reset)
        self._thread.start()

    def stop(self):
        with self._condition:
            self._stop = True
            self._condition.notify()
        if self._backoff_timer is not None:
            self.cleanup_backoff()
        self._thread.join()

    def notify_reset(self):
        with self._condition:
            self._pending_reset = True
            self._condition.notify()

    def _wait_for_reset(self):
        with self._condition:
            while not self._pending_reset and not self._stop:
                self._condition.wait()
            self._pending_reset = False
            return not self._stop

    def _do_reset(self):
        log.debug('config handler thread start')

        while self._wait_for_reset():
            log.debug('config handler woken for reset')
            start_time = time.time()

            incomplete = 0
            try:
                config = _parse_config(self._config_file)
                incomplete = apply_config(config, self._state_file,
                                          self._provider, self._bigip)
            except (ValueError, ConfigError):
                formatted_lines = traceback.format_exc().splitlines()
                last_line = formatted_lines[-1]
                log.error('Failed to process the config file {} ({})'
                          .format(self._config_file, last_line))
                incomplete = 1
            except Exception as e:
                log.exception(f'Unexpected error: {str(e)}')
                incomplete = 1

            if incomplete:
                # Error occurred, perform retries
                self.handle_backoff()
            else:
                if self._interval and not self._interval.is_running():
                    self._interval.start()
                self._backoff_time = 1
                if self._backoff_timer is not None:
                    self.cleanup_backoff()

            log.debug('updating tasks finished, took %s seconds',
                      time.time() - start_time)

        log.info('stopping config handler')
        if self._backoff_timer is not None:
            self.cleanup_backoff()
        if self._interval:
            self._interval.stop()

    def cleanup_backoff(self):
        """Cleans up canceled backoff timers."""
        timer = self._backoff_timer
        self._backoff_timer = None
        if timer is not None:
            timer.cancel()
            if timer is not threading.current_thread():
                timer.join()

    def handle_backoff(self):
        """Wrapper for calls to retry_backoff."""
        if self._interval and self._interval.is_running():
            self._interval.stop()
        if self._backoff_timer is None:
            self.retry_backoff()

    def retry_backoff(self):
        """Add a backoff timer to retry in case of failure."""
        def timer_cb():
            self._backoff_timer = None
            self.notify_reset()

        self._backoff_timer = threading.Timer(
            self._backoff_time, timer_cb
        )
        log.error("Error applying config, will try again in %s seconds",
                  self._backoff_time)
        self._backoff_timer.start()
        if self._backoff_time < self._max_backoff_time:
            self._backoff_time *= 2


class ConfigWatcher(pyinotify.ProcessEvent):
    """Calls on_change whenever the content of config_file changes.

    Watches the parent directory with inotify and falls back to polling
    while that directory does not exist.
    """

    def __init__(self, config_file, on_change):
        basename = os.path.basename(config_file)
        if not basename:
            raise ConfigError('config_file must be a file path')

        self._config_file = config_file
        self._on_change = on_change

        self._config_dir = os.path.dirname(self._config_file)
        self._config_stats = None
        if os.path.exists(self._config_file):
            try:
                self._config_stats = self._digest()
            except IOError as ioe:
                log.warning('ioerror during sha sum calculation: {}'.
                            format(ioe))

        self._running = False
        self._polling = False
        self._user_abort = False
        signal.signal(signal.SIGINT, self._exit_gracefully)
        signal.signal(signal.SIGTERM, self._exit_gracefully)

    def _exit_gracefully(self, signum, frame):
        self._user_abort = True
        self._running = False

    def _loop_check(self, notifier):
        if self._polling:
            log.debug('inotify loop ended - returning to polling mode')
            return True
        return not self._running

    def _wait_for_directory(self):
        while self._polling and self._running:
            if os.path.exists(self._config_dir):
                log.debug('found watchable directory - {}'.format(
                    self._config_dir))
                self._polling = False
                break
            log.debug('waiting for watchable directory - {}'.format(
                self._config_dir))
            time.sleep(1)

    def loop(self):
        self._running = True
        if not os.path.exists(self._config_dir):
            log.info(
                'configured directory doesn\'t exist {}, entering poll loop'.
                format(self._config_dir))
            self._polling = True

        while self._running:
            try:
                self._wait_for_directory()
                if not self._running:
                    break

                _wm = pyinotify.WatchManager()
                _notifier = pyinotify.Notifier(_wm, default_proc_fun=self,
                                               timeout=1000)
                _notifier.coalesce_events(True)
                mask = (pyinotify.IN_CREATE | pyinotify.IN_DELETE |
                        pyinotify.IN_MOVED_FROM | pyinotify.IN_MOVED_TO |
                        pyinotify.IN_CLOSE_WRITE | pyinotify.IN_MOVE_SELF |
                        pyinotify.IN_DELETE_SELF)
                _wm.add_watch(
                    path=self._config_dir,
                    mask=mask,
                    quiet=False,
                    exclude_filter=lambda path: False)

                log.info('entering inotify loop to watch {}'.format(
                    self._config_file))
                _notifier.loop(callback=self._loop_check)
            except Exception as e:
                log.warning(e)

        if self._user_abort:
            log.info('Received user kill signal, terminating.')

    def _digest(self):
        sha = hashlib.sha256()

        with open(self._config_file, 'rb') as f:
            fcntl.lockf(f.fileno(), fcntl.LOCK_SH, 0, 0, 0)
            for buf in iter(lambda: f.read(4096), b''):
                sha.update(buf)
            fcntl.lockf(f.fileno(), fcntl.LOCK_UN, 0, 0, 0)
        return sha.digest()

    def _is_changed(self):
        cur_hash = None
        if os.path.exists(self._config_file):
            try:
                cur_hash = self._digest()
            except IOError as ioe:
                log.warning('ioerror during sha sum calculation: {}'.
                            format(ioe))
                return (False, self._config_stats)
        return (cur_hash != self._config_stats, cur_hash)

    def process_default(self, event):
        if event.mask in (pyinotify.IN_DELETE_SELF, pyinotify.IN_MOVE_SELF):
            log.warning(
                'watchpoint {} has been moved or destroyed, using poll loop'.
                format(self._config_dir))
            self._polling = True

            if self._config_stats is not None:
                log.debug('config file {} changed, parent gone'.format(
                    self._config_file))
                self._config_stats = None
                self._on_change()

        if event.pathname == self._config_file:
            (changed, sha) = self._is_changed()

            if changed:
                log.debug('config file {} changed - applying'.format(
                    self._config_file))
                self._config_stats = sha
                self._on_change()


def _parse_config(config_file):
    def _file_exist_cb(log_success):
        if os.path.exists(config_file):
            if log_success:
                log.info('Config file: {} found'.format(config_file))
            return (True, None)
        else:
            return (False, 'Waiting for config file {}'.format(config_file))
    _retry_backoff(_file_exist_cb)

    with open(config_file, 'r') as config:
        fcntl.lockf(config.fileno(), fcntl.LOCK_SH, 0, 0, 0)
        data = config.read()
        fcntl.lockf(config.fileno(), fcntl.LOCK_UN, 0, 0, 0)
        config_json = json.loads(data)
        log.debug('loaded configuration file successfully')
        return config_json


def _handle_args(argv=None):
    parser = argparse.ArgumentParser(
        description='Apply BIG-IP APM webtop, ILX workspace and DNS '
                    'resolver declarations')
    parser.add_argument(
            '--config-file',
            type=str,
            required=True,
            help='Declaration file (JSON)')
    parser.add_argument(
            '--state-file',
            type=str,
            help='State file, default {} next to the config file'.format(
                DEFAULT_STATE_FILE_NAME))
    parser.add_argument(
            '--import',
            dest='import_target',
            metavar='ADDRESS=ID',
            type=str,
            help='Import an existing object, e.g. '
                 'bigip_net_dns_resolver.r1=/Common/r1')
    parser.add_argument(
            '--once',
            action='store_true',
            help='Apply once and exit instead of watching the config file')
    args = parser.parse_args(argv)

    basename = os.path.basename(args.config_file)
    if not basename:
        raise ConfigError('must provide a file path')

    args.config_file = os.path.realpath(args.config_file)
    if args.state_file is None:
        args.state_file = os.path.join(os.path.dirname(args.config_file),
                                       DEFAULT_STATE_FILE_NAME)
    args.state_file = os.path.realpath(args.state_file)

    if args.import_target is not None:
        address, sep, import_id = args.import_target.partition('=')
        if not sep or not address or not import_id:
            raise ConfigError('--import expects ADDRESS=ID')
        args.import_target = (address, import_id)

    return args


def _handle_global_config(config):
    level = DEFAULT_LOG_LEVEL
    verify_interval = DEFAULT_VERIFY_INTERVAL

    if config and 'global' in config:
        global_cfg = config['global']

        if 'log-level' in global_cfg:
            log_level = global_cfg['log-level']
            try:
                level = logging.getLevelName(log_level.upper())
            except AttributeError:
                log.warning('The "global:log-level" field in the '
                            'configuration file should be a string')

        if 'verify-interval' in global_cfg:
            try:
                verify_interval = float(global_cfg['verify-interval'])
                if verify_interval < 0:
                    verify_interval = DEFAULT_VERIFY_INTERVAL
                    log.warning('The "global:verify-interval" field in the '
                                'configuration file should be a non-negative '
                                'number')
            except (TypeError, ValueError):
                log.warning('The "global:verify-interval" field in the '
                            'configuration file should be a number')

    if not isinstance(level, int):
        log.warning('Undefined value specified for the '
                    '"global:log-level" field in the configuration file')
        level = DEFAULT_LOG_LEVEL
    root_logger.setLevel(level)
    if level > logging.DEBUG:
        logging.getLogger('requests.packages.urllib3.'
                          'connectionpool').setLevel(logging.WARNING)

    # level only is needed for unit tests
    return verify_interval, level


def _handle_bigip_config(config):
    """Turn the "bigip" section into a provider configuration."""
    if (not config) or ('bigip' not in config):
        raise ConfigError('Configuration file missing "bigip" section')
    bigip = config['bigip']
    if 'url' not in bigip:
        raise ConfigError('Configuration file missing "bigip:url" section')

    url = urlparse(bigip['url'])
    if not url.hostname:
        raise ConfigError('"bigip:url" must be a URL, e.g. '
                          'https://10.1.1.4:8443')
    provider_config = {
        'address': url.hostname,
        'token_auth': bool(bigip.get('token-auth', False)),
        'validate_certs': bool(bigip.get('validate-certs', False)),
    }
    # left unset so BIGIP_PORT, BIGIP_USER and BIGIP_PASSWORD can apply
    if url.port:
        provider_config['port'] = url.port
    for key in ('username', 'password'):
        if bigip.get(key):
            provider_config[key] = bigip[key]
    return provider_config


def _set_user_agent():
    return 'f5-bigip-provider-' + __version__


def _retry_backoff(cb):
    RETRY_INTERVAL = 1
    log_interval = 0.5
    elapsed = 0.5
    log_success = False
    while 1:
        if log_interval > 0.5:
            log_success = True
        (success, val) = cb(log_success)
        if success:
            return val
        if elapsed == log_interval:
            elapsed = 0
            log_interval *= 2
            log.error("Encountered error: {}. Retrying for {} seconds.".format(
                val, int(log_interval)
            ))
        time.sleep(RETRY_INTERVAL)
        elapsed += RETRY_INTERVAL


def _import(args, provider, bigip):
    address, import_id = args.import_target
    state = load_state(args.state_file)
    new_state, diags = import_resource(provider, bigip, state, address,
                                       import_id)
    for diag in diags:
        if diag.is_error():
            log.error('%s', diag)
        else:
            log.warning('%s', diag)
    if has_error(diags):
        return 1
    save_state(args.state_file, new_state)
    log.info('imported %s as %s', import_id, address)
    return 0


def main(argv=None):
    try:
        args = _handle_args(argv)

        config = _parse_config(args.config_file)
        verify_interval, _ = _handle_global_config(config)
        provider_config = _handle_bigip_config(config)

        provider = Provider()
        schema_errors = provider.internal_validate()
        if schema_errors:
            raise ConfigError('; '.join(schema_errors))

        # FIXME: the "bigip" section is read once at startup; later edits
        #        only take effect for the declaration, not the connection.
        def _bigip_connect_cb(log_success):
            try:
                bigip = provider.configure(provider_config,
                                           user_agent=_set_user_agent())
                if log_success:
                    log.info('BIG-IP connection established.')
                return (True, bigip)
            except ConfigError:
                raise
            except Exception as e:
                return (False, 'BIG-IP connection error: {}'.format(e))
        bigip = _retry_backoff(_bigip_connect_cb)

        if args.import_target is not None:
            return _import(args, provider, bigip)

        if args.once:
            incomplete = apply_config(config, args.state_file, provider,
                                      bigip)
            return 1 if incomplete else 0

        handler = ConfigHandler(args.config_file,
                                args.state_file,
                                provider,
                                bigip,
                                verify_interval)

        if os.path.exists(args.config_file):
            handler.notify_reset()

        watcher = ConfigWatcher(args.config_file, handler.notify_reset)
        watcher.loop()
        handler.stop()
    except (IOError, ValueError, ConfigError) as e:
        log.error(e)
        sys.exit(1)
    except Exception as e:
        log.exception(f'Unexpected error: {str(e)}')
        sys.exit(1)

    return 0


if __name__ == "__main__":
    sys.exit(main())
