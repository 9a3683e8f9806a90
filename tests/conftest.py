"""In-memory stand-in for a BIG-IP iControl REST endpoint."""

import copy
import json
from types import SimpleNamespace

import pytest
from icontrol.exceptions import iControlUnexpectedHTTPError

from f5_bigip_provider.client import BigIP
from f5_bigip_provider.provider import Provider

BASE_URI = 'https://bigip.test:443/mgmt/tm/'

WEBTOP = 'apm/resource/webtop'
WORKSPACE = 'ilx/workspace'
DNS_RESOLVER = 'net/dns-resolver'

DEFAULTS = {
    WEBTOP: {
        'initialState': 'Collapsed',
        'customizationType': 'Modern',
        'linkType': 'uri',
        'webtopType': 'portal-access',
        'showSearch': 'false',
        'warningOnClose': 'true',
        'urlEntryField': 'true',
        'resourceSearch': 'false',
        'minimizeToTray': 'true',
        'locationSpecific': 'true',
    },
    WORKSPACE: {
        'nodeVersion': '6.9.1',
        'version': '17.1.0',
    },
    DNS_RESOLVER: {
        'answerDefaultZones': 'no',
        'cacheSize': 5767168,
        'randomizeQueryNameCase': 'yes',
        'routeDomain': '/Common/0',
        'useIpv4': 'yes',
        'useIpv6': 'yes',
        'useTcp': 'yes',
        'useUdp': 'yes',
    },
}


def _webtop_full_path(payload):
    name = payload['name']
    if name.startswith('/'):
        return name
    return '/{}/{}'.format(payload.get('partition') or 'Common', name)


class FakeResponse(object):
    def __init__(self, status_code=200, body=None, url='', reason='OK'):
        self.status_code = status_code
        self.url = url
        self.reason = reason
        self._body = body
        self.text = json.dumps(body) if body is not None else ''

    def json(self):
        return copy.deepcopy(self._body)


class FakeSession(object):
    """Records calls and keeps objects per collection, keyed by ~name."""

    def __init__(self):
        self.objects = dict((c, {}) for c in DEFAULTS)
        self.calls = []
        self._failures = []

    def fail_next(self, verb, status, message):
        self._failures.append((verb, status, message))

    def _error(self, uri, status, message, reason='Error'):
        body = {'code': status, 'message': message, 'errorStack': []}
        response = FakeResponse(status, body, url=uri, reason=reason)
        raise iControlUnexpectedHTTPError(
            '%s Unexpected Error: %s for uri: %s\nText: %r' % (
                status, reason, uri, response.text),
            response=response)

    def _dispatch(self, verb, uri, payload=None):
        self.calls.append((verb, uri, copy.deepcopy(payload)))
        for failure in self._failures:
            if failure[0] == verb:
                self._failures.remove(failure)
                self._error(uri, failure[1], failure[2])

        path, _, query = uri[len(BASE_URI):].partition('?')
        if path in self.objects:
            return getattr(self, '_' + verb + '_collection')(
                uri, path, query, payload)
        collection, _, key = path.rpartition('/')
        if collection not in self.objects:
            self._error(uri, 400, 'unknown collection', reason='Bad Request')
        if collection == WEBTOP and not key.startswith('~'):
            # bare names resolve in /Common
            key = '~Common~' + key
        objects = self.objects[collection]
        if key not in objects:
            self._error(uri, 404, '01020036:3: The requested object (%s) '
                        'was not found.' % key, reason='Not Found')
        if verb == 'get':
            return FakeResponse(200, objects[key], url=uri)
        if verb == 'patch':
            objects[key].update(payload)
            objects[key]['generation'] += 1
            return FakeResponse(200, objects[key], url=uri)
        if verb == 'delete':
            del objects[key]
            return FakeResponse(200, url=uri)
        self._error(uri, 405, 'method not allowed')

    def _post_collection(self, uri, path, query, payload):
        objects = self.objects[path]
        key = payload['name'].replace('/', '~')
        if path == WEBTOP:
            key = _webtop_full_path(payload).replace('/', '~')
        if query.startswith('options=extension,'):
            if key not in objects:
                self._error(uri, 404, '01020036:3: workspace not found',
                            reason='Not Found')
            ext = query.split(',', 1)[1]
            objects[key].setdefault('extensions', []).append(
                {'name': ext, 'files': [{'name': 'index.js'},
                                        {'name': 'package.json'}]})
            return FakeResponse(200, objects[key], url=uri)
        if key in objects:
            self._error(uri, 409, '01020066:3: The requested object (%s) '
                        'already exists.' % key, reason='Conflict')
        name = payload['name']
        full_path = name if name.startswith('/') else '/Common/' + name
        if path == WEBTOP:
            full_path = _webtop_full_path(payload)
        obj = copy.deepcopy(DEFAULTS[path])
        obj.update(payload)
        obj.update({
            'name': name.rsplit('/', 1)[-1] if path == WEBTOP else name,
            'fullPath': full_path,
            'generation': 1,
            'selfLink': 'https://localhost/mgmt/tm/%s/%s' % (
                path, full_path.replace('/', '~')),
        })
        if path == WORKSPACE:
            obj['stagedDirectory'] = '/var/ilx/workspaces/Common/' + name
        if path == WEBTOP and obj.get('customizationGroup'):
            obj['customizationGroupReference'] = {
                'link': 'https://localhost/mgmt/tm/apm/resource/'
                        'customization-group/%s' % (
                            obj['customizationGroup'].replace('/', '~'))}
        objects[key] = obj
        return FakeResponse(200, obj, url=uri)

    def _get_collection(self, uri, path, query, payload):
        return FakeResponse(200, {'items': list(self.objects[path].values())},
                            url=uri)

    def get(self, uri, **kwargs):
        return self._dispatch('get', uri)

    def post(self, uri, json=None, **kwargs):
        return self._dispatch('post', uri, json)

    def patch(self, uri, json=None, **kwargs):
        return self._dispatch('patch', uri, json)

    def delete(self, uri, **kwargs):
        return self._dispatch('delete', uri)


class FakeMgmt(object):
    def __init__(self, session):
        self.icrs = session
        self._meta_data = {'uri': BASE_URI}
        self.tmos_version = '17.1.0'
        self.uploaded = []
        self.commands = []
        self.shared = SimpleNamespace(file_transfer=SimpleNamespace(
            uploads=SimpleNamespace(upload_file=self._upload_file)))
        self.tm = SimpleNamespace(util=SimpleNamespace(
            bash=SimpleNamespace(exec_cmd=self._exec_cmd)))

    def _upload_file(self, filepathname, **kwargs):
        self.uploaded.append(filepathname)

    def _exec_cmd(self, command, **kwargs):
        self.commands.append((command, kwargs.get('utilCmdArgs')))
        return SimpleNamespace(commandResult='')


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def mgmt(session):
    return FakeMgmt(session)


@pytest.fixture
def bigip(mgmt):
    return BigIP(mgmt)


@pytest.fixture
def provider():
    return Provider()
