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

import logging

from f5_bigip_provider.exceptions import (BigIPRequestError, Diagnostic,
                                          is_not_found)
from f5_bigip_provider.models import DNSResolver, DNSResolverForwardZone
from f5_bigip_provider.schema import (TYPE_INT, TYPE_LIST, TYPE_STRING,
                                      Resource, Schema,
                                      import_state_passthrough,
                                      validate_f5_name_with_directory)

log = logging.getLogger(__name__)

# attributes copied one-to-one onto DNSResolver
_SCALAR_ATTRIBUTES = (
    'description',
    'answer_default_zones',
    'cache_size',
    'randomize_query_name_case',
    'route_domain',
    'type',
    'use_ipv4',
    'use_ipv6',
    'use_tcp',
    'use_udp',
)


def _optional_computed(type, description):
    return Schema(type, optional=True, computed=True,
                  description=description)


def resource_bigip_net_dns_resolver():
    return Resource(
        create=resource_bigip_net_dns_resolver_create,
        read=resource_bigip_net_dns_resolver_read,
        update=resource_bigip_net_dns_resolver_update,
        delete=resource_bigip_net_dns_resolver_delete,
        importer=import_state_passthrough,
        schema={
            'name': Schema(
                TYPE_STRING, required=True, force_new=True,
                validate=validate_f5_name_with_directory,
                description='Name of the DNS resolver '
                            '(e.g. /Common/resolver1)'),
            'description': _optional_computed(
                TYPE_STRING, 'User defined description'),
            'answer_default_zones': _optional_computed(
                TYPE_STRING,
                'Specifies whether the resolver answers default zones.'),
            'cache_size': _optional_computed(
                TYPE_INT, 'Specifies the cache size for the resolver.'),
            'randomize_query_name_case': _optional_computed(
                TYPE_STRING,
                'Specifies whether the resolver randomizes query name case.'),
            'route_domain': _optional_computed(
                TYPE_STRING, 'Specifies the route domain for the resolver.'),
            'type': _optional_computed(
                TYPE_STRING, 'Specifies the resolver type.'),
            'use_ipv4': _optional_computed(
                TYPE_STRING, 'Specifies whether the resolver uses IPv4.'),
            'use_ipv6': _optional_computed(
                TYPE_STRING, 'Specifies whether the resolver uses IPv6.'),
            'use_tcp': _optional_computed(
                TYPE_STRING, 'Specifies whether the resolver uses TCP.'),
            'use_udp': _optional_computed(
                TYPE_STRING, 'Specifies whether the resolver uses UDP.'),
            'forward_zones': Schema(
                TYPE_LIST, optional=True, computed=True,
                description='Forward zones with their nameservers.',
                elem={
                    'name': Schema(TYPE_STRING, required=True,
                                   description='Forward zone name.'),
                    'nameservers': Schema(
                        TYPE_LIST, optional=True,
                        elem=Schema(TYPE_STRING),
                        description='List of nameservers for the zone '
                                    '(IP[:port]).'),
                }),
        })


def resource_bigip_net_dns_resolver_create(d, meta):
    client = meta
    name = d.get('name')

    log.info('Creating DNS Resolver %s', name)
    config = get_net_dns_resolver_config(d, DNSResolver(name=name))
    try:
        client.create_dns_resolver(config)
    except BigIPRequestError as e:
        return [Diagnostic.from_error(
            'error creating DNS resolver {}: {}'.format(name, e))]

    d.set_id(name)
    return resource_bigip_net_dns_resolver_read(d, meta)


def resource_bigip_net_dns_resolver_read(d, meta):
    client = meta
    name = d.id

    log.info('Reading DNS Resolver %s', name)
    try:
        resolver = client.get_dns_resolver(name)
    except BigIPRequestError as e:
        if is_not_found(e):
            log.warning('DNS Resolver (%s) not found, removing from state',
                        name)
            d.set_id('')
            return []
        return [Diagnostic.from_error(
            'error retrieving DNS resolver {}: {}'.format(name, e))]
    if resolver is None:
        log.warning('DNS Resolver (%s) not found, removing from state', name)
        d.set_id('')
        return []

    d.set('name', resolver.full_path or name)
    for attr in _SCALAR_ATTRIBUTES:
        d.set(attr, getattr(resolver, attr))
    d.set('forward_zones',
          flatten_dns_resolver_forward_zones(resolver.forward_zones))
    return []


def resource_bigip_net_dns_resolver_update(d, meta):
    client = meta
    name = d.id

    log.info('Updating DNS Resolver %s', name)
    config = get_net_dns_resolver_config(d, DNSResolver(name=name))
    try:
        client.modify_dns_resolver(name, config)
    except BigIPRequestError as e:
        return [Diagnostic.from_error(
            'error modifying DNS resolver {}: {}'.format(name, e))]
    return resource_bigip_net_dns_resolver_read(d, meta)


def resource_bigip_net_dns_resolver_delete(d, meta):
    client = meta
    name = d.id

    log.info('Deleting DNS Resolver %s', name)
    try:
        client.delete_dns_resolver(name)
    except BigIPRequestError as e:
        if not is_not_found(e):
            return [Diagnostic.from_error(
                'error deleting DNS resolver {}: {}'.format(name, e))]
    d.set_id('')
    return []


def get_net_dns_resolver_config(d, config):
    for attr in _SCALAR_ATTRIBUTES:
        setattr(config, attr, d.get(attr))
    zones, ok = d.get_ok('forward_zones')
    if ok:
        config.forward_zones = expand_dns_resolver_forward_zones(zones)
    return config


def expand_dns_resolver_forward_zones(raw):
    """Turn forward_zones attribute maps into DNSResolverForwardZone."""
    if not raw:
        return None
    zones = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        zone = DNSResolverForwardZone(name=item.get('name') or '')
        nameservers = item.get('nameservers')
        if isinstance(nameservers, list):
            zone.nameservers = [str(ns) for ns in nameservers]
        zones.append(zone)
    return zones


def flatten_dns_resolver_forward_zones(zones):
    if not zones:
        return []
    return [{'name': zone.name,
             'nameservers': [ns for ns in zone.nameservers if ns]}
            for zone in zones]
