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

"""iControl REST client for the objects this provider manages.

BigIP wraps an f5-sdk ManagementRoot. Plain CRUD goes through the
ManagementRoot's iControl REST session; ILX file uploads use the
file-transfer and util bash endpoints of the SDK.
"""

import logging
import os

from f5.bigip import ManagementRoot
from f5.sdk_exception import F5SDKError
from icontrol.exceptions import iControlUnexpectedHTTPError

from f5_bigip_provider.exceptions import BigIPRequestError
from f5_bigip_provider.models import (DNSResolver, ILXWorkspace, WebtopRead)

log = logging.getLogger(__name__)

URI_APM_WEBTOP = ('apm', 'resource', 'webtop')
URI_ILX_WORKSPACE = ('ilx', 'workspace')
URI_DNS_RESOLVER = ('net', 'dns-resolver')

WORKSPACE_UPLOAD_PATH = '/var/ilx/workspaces'
# where the file-transfer upload endpoint drops files on the BIG-IP
UPLOAD_DOWNLOADS_PATH = '/var/config/rest/downloads'
# the only mutable files of an extension or rule set
UPLOADABLE_FILES = ('index.js', 'package.json')


def transform_name(name):
    """Return the URI form of a BIG-IP object name (/Common/a -> ~Common~a)."""
    return name.replace('/', '~')


class BigIP(object):
    """BigIP class.

    Thin request layer over a ManagementRoot.

    Args:
        mgmt: f5.bigip.ManagementRoot object
    """

    def __init__(self, mgmt):
        self._mgmt = mgmt
        self._icrs = mgmt.icrs
        self._base_uri = mgmt._meta_data['uri']

    @classmethod
    def connect(cls, host, username, password, port=443, token=False,
                user_agent=None, verify=False):
        """Open a management session to a BIG-IP."""
        kwargs = {'port': port, 'verify': verify}
        if token:
            kwargs['token'] = True
        mgmt = ManagementRoot(host, username, password, **kwargs)
        if user_agent is not None:
            mgmt.icrs.append_user_agent(user_agent)
        log.info('connected to BIG-IP %s:%s (TMOS %s)', host, port,
                 getattr(mgmt, 'tmos_version', 'unknown'))
        return cls(mgmt)

    def mgmt_root(self):
        """ Return the BIG-IP ManagementRoot object"""
        return self._mgmt

    def _uri(self, *parts):
        path = '/'.join(p.strip('/') for p in parts if p)
        return self._base_uri + path

    def _call(self, verb, uri, **kwargs):
        log.debug('%s %s', verb.upper(), uri)
        try:
            return getattr(self._icrs, verb)(uri, **kwargs)
        except iControlUnexpectedHTTPError as e:
            response = e.response
            status = response.status_code if response is not None else None
            text = response.text if response is not None else ''
            raise BigIPRequestError(str(e), status_code=status, text=text)

    def get_for_entity(self, *parts):
        """GET a single object.

        Returns:
            (dict, True) when it exists, (None, False) on HTTP 404
        """
        try:
            response = self._call('get', self._uri(*parts))
        except BigIPRequestError as e:
            if e.status_code == 404:
                return None, False
            raise
        return response.json(), True

    def post(self, payload, *parts):
        self._call('post', self._uri(*parts), json=payload)

    def patch(self, payload, *parts):
        self._call('patch', self._uri(*parts), json=payload)

    def delete(self, *parts):
        self._call('delete', self._uri(*parts))

    # APM webtop

    def create_webtop(self, webtop):
        self.post(webtop.to_json(), *URI_APM_WEBTOP)

    def get_webtop(self, name):
        """Return the WebtopRead for name.

        A missing webtop raises BigIPRequestError like any other failure.
        """
        data = self._call(
            'get', self._uri(*URI_APM_WEBTOP + (transform_name(name),)))
        return WebtopRead.from_json(data.json())

    def modify_webtop(self, name, config):
        self.patch(config.to_json(),
                   *URI_APM_WEBTOP + (transform_name(name),))

    def delete_webtop(self, name):
        self.delete(*URI_APM_WEBTOP + (transform_name(name),))

    # ILX workspace

    def get_workspace(self, name):
        """Return the ILXWorkspace, or None when it does not exist."""
        data, exists = self.get_for_entity(
            *URI_ILX_WORKSPACE + (transform_name(name),))
        if not exists:
            return None
        return ILXWorkspace.from_json(data)

    def create_workspace(self, name):
        try:
            self.post(ILXWorkspace(name=name).to_json(), *URI_ILX_WORKSPACE)
        except BigIPRequestError as e:
            raise BigIPRequestError(
                'error creating ILX Workspace: {}'.format(e),
                status_code=e.status_code, text=e.text)

    def patch_workspace(self, name):
        try:
            self.patch(ILXWorkspace(name=name).to_json(),
                       *URI_ILX_WORKSPACE + (transform_name(name),))
        except BigIPRequestError as e:
            raise BigIPRequestError(
                'error patching ILX Workspace: {}'.format(e),
                status_code=e.status_code, text=e.text)

    def delete_workspace(self, name):
        try:
            self.delete(*URI_ILX_WORKSPACE + (transform_name(name),))
        except BigIPRequestError as e:
            raise BigIPRequestError(
                'error deleting ILX Workspace: {}'.format(e),
                status_code=e.status_code, text=e.text)

    def create_extension(self, opts):
        uri = self._uri(*URI_ILX_WORKSPACE) + \
            '?options=extension,{}'.format(opts.name)
        try:
            self._call('post', uri,
                       json=ILXWorkspace(name=opts.workspace_name).to_json())
        except BigIPRequestError as e:
            raise BigIPRequestError(
                'error creating ILX Extension: {}'.format(e),
                status_code=e.status_code, text=e.text)

    def upload_extension_files(self, opts, path):
        destination = '{}/{}/{}/extensions/{}/'.format(
            WORKSPACE_UPLOAD_PATH, opts.partition, opts.workspace_name,
            opts.name)
        self._upload_files_to_destination(_read_files_from_directory(path),
                                          destination)

    def upload_rule_files(self, opts, path):
        destination = '{}/{}/{}/rules/'.format(
            WORKSPACE_UPLOAD_PATH, opts.partition, opts.workspace_name)
        self._upload_files_to_destination(_read_files_from_directory(path),
                                          destination)

    def _upload_files_to_destination(self, files, destination):
        for uploaded in self._upload_files(files):
            self._run_cat_command(uploaded, destination)

    def _upload_files(self, files):
        uploaded = []
        for path in files:
            if os.path.basename(path) not in UPLOADABLE_FILES:
                continue
            log.debug('uploading %s', path)
            try:
                self._mgmt.shared.file_transfer.uploads.upload_file(path)
            except (F5SDKError, iControlUnexpectedHTTPError) as e:
                raise BigIPRequestError(
                    'error uploading file: {}'.format(e))
            uploaded.append('{}/{}'.format(UPLOAD_DOWNLOADS_PATH,
                                           os.path.basename(path)))
        return uploaded

    def _run_cat_command(self, uploaded, destination):
        args = "-c 'cat {} > {}'".format(
            uploaded, destination + os.path.basename(uploaded))
        try:
            output = self._mgmt.tm.util.bash.exec_cmd('run', utilCmdArgs=args)
        except (F5SDKError, iControlUnexpectedHTTPError) as e:
            raise BigIPRequestError('error running command: {}'.format(e))
        log.debug('bash %s: %s', args,
                  getattr(output, 'commandResult', ''))

    # net DNS resolver

    def create_dns_resolver(self, resolver):
        self.post(resolver.to_json(), *URI_DNS_RESOLVER)

    def get_dns_resolver(self, name):
        """Return the DNSResolver, or None when it does not exist."""
        data, exists = self.get_for_entity(
            *URI_DNS_RESOLVER + (transform_name(name),))
        if not exists:
            return None
        return DNSResolver.from_json(data)

    def modify_dns_resolver(self, name, resolver):
        self.patch(resolver.to_json(),
                   *URI_DNS_RESOLVER + (transform_name(name),))

    def delete_dns_resolver(self, name):
        self.delete(*URI_DNS_RESOLVER + (transform_name(name),))


def _read_files_from_directory(path):
    """List the regular files directly under path, sorted by name."""
    try:
        entries = sorted(os.listdir(path))
    except OSError as e:
        raise BigIPRequestError('error reading directory: {}'.format(e))
    return [os.path.join(path, entry) for entry in entries
            if os.path.isfile(os.path.join(path, entry))]
