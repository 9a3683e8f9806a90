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

"""Provider: the registry of resources and data sources plus the client
configuration they share."""

import logging
import os

from f5_bigip_provider import __version__
from f5_bigip_provider.client import BigIP
from f5_bigip_provider.datasource_apm_webtop import \
    data_source_bigip_apm_webtop
from f5_bigip_provider.exceptions import ConfigError
from f5_bigip_provider.resource_apm_webtop import resource_bigip_apm_webtop
from f5_bigip_provider.resource_ilx_workspace import \
    resource_bigip_ilx_workspace
from f5_bigip_provider.resource_net_dns_resolver import \
    resource_bigip_net_dns_resolver
from f5_bigip_provider.schema import (TYPE_BOOL, TYPE_INT, TYPE_STRING,
                                      Schema)

log = logging.getLogger(__name__)

DEFAULT_PORT = 443

# provider attribute -> environment fallback
_ENV_FALLBACKS = (
    ('address', 'BIGIP_HOST'),
    ('username', 'BIGIP_USER'),
    ('password', 'BIGIP_PASSWORD'),
    ('port', 'BIGIP_PORT'),
)


class Provider(object):
    def __init__(self):
        self.schema = {
            'address': Schema(TYPE_STRING, optional=True,
                              description='Domain name or IP address of the '
                                          'BIG-IP'),
            'username': Schema(TYPE_STRING, optional=True,
                               description='Username with API access'),
            'password': Schema(TYPE_STRING, optional=True,
                               description='Password for API access'),
            'port': Schema(TYPE_INT, optional=True,
                           description='Management port, default 443'),
            'token_auth': Schema(TYPE_BOOL, optional=True,
                                 description='Enable token authentication'),
            'validate_certs': Schema(TYPE_BOOL, optional=True,
                                     description='Verify the BIG-IP server '
                                                 'certificate'),
        }
        self.resources_map = {
            'bigip_apm_webtop': resource_bigip_apm_webtop(),
            'bigip_ilx_workspace': resource_bigip_ilx_workspace(),
            'bigip_net_dns_resolver': resource_bigip_net_dns_resolver(),
        }
        self.data_sources_map = {
            'bigip_apm_webtop': data_source_bigip_apm_webtop(),
        }

    def resource(self, type_name):
        try:
            return self.resources_map[type_name]
        except KeyError:
            raise ConfigError('unsupported resource type: {}'.format(
                type_name))

    def data_source(self, type_name):
        try:
            return self.data_sources_map[type_name]
        except KeyError:
            raise ConfigError('unsupported data source type: {}'.format(
                type_name))

    def internal_validate(self):
        errors = []
        for name, resource in self.resources_map.items():
            errors += resource.internal_validate(name)
        for name, resource in self.data_sources_map.items():
            errors += resource.internal_validate('data.' + name)
        return errors

    def configure(self, config, user_agent=None, connect=BigIP.connect):
        """Return the client shared by all handlers.

        Args:
            config: provider attribute map; unset values fall back to
                BIGIP_HOST, BIGIP_USER, BIGIP_PASSWORD and BIGIP_PORT
        """
        config = dict(config or {})
        for key, env in _ENV_FALLBACKS:
            if config.get(key) in (None, '') and os.getenv(env):
                config[key] = os.getenv(env)

        for key in ('address', 'username', 'password'):
            if not config.get(key):
                raise ConfigError('provider configuration missing "{}"'
                                  .format(key))
        try:
            port = int(config.get('port') or DEFAULT_PORT)
        except ValueError:
            raise ConfigError('provider "port" must be a number')

        if user_agent is None:
            user_agent = 'f5-bigip-provider-' + __version__
        return connect(config['address'],
                       config['username'],
                       config['password'],
                       port=port,
                       token=bool(config.get('token_auth')),
                       user_agent=user_agent,
                       verify=bool(config.get('validate_certs')))
