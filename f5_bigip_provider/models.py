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

"""Request and response payloads for the iControl REST endpoints."""

WEBTOP_TYPE_PORTAL = 'portal-access'
WEBTOP_TYPE_FULL = 'full'
WEBTOP_TYPE_NETWORK = 'network-access'
CUSTOMIZATION_TYPE_MODERN = 'Modern'
CUSTOMIZATION_TYPE_STANDARD = 'Standard'
INITIAL_STATE_COLLAPSED = 'Collapsed'
INITIAL_STATE_EXPANDED = 'Expanded'
LINK_TYPE_URI = 'uri'

WEBTOP_TYPES = (WEBTOP_TYPE_PORTAL, WEBTOP_TYPE_FULL, WEBTOP_TYPE_NETWORK)
CUSTOMIZATION_TYPES = (CUSTOMIZATION_TYPE_MODERN, CUSTOMIZATION_TYPE_STANDARD)
INITIAL_STATES = (INITIAL_STATE_COLLAPSED, INITIAL_STATE_EXPANDED)
LINK_TYPES = (LINK_TYPE_URI,)


def booled_string(value):
    """Some endpoints carry booleans as the strings "true" and "false"."""
    return 'true' if value else 'false'


def parse_booled_string(raw):
    return raw is True or raw == 'true'


def _omit_empty(payload):
    return dict((k, v) for k, v in payload.items() if v not in ('', 0, None))


class WebtopConfig(object):
    """The updatable part of an APM webtop."""

    _ENUM_FIELDS = (
        ('initial_state', 'initialState'),
        ('customization_type', 'customizationType'),
        ('link_type', 'linkType'),
        ('webtop_type', 'webtopType'),
    )
    _BOOLED_FIELDS = (
        ('show_search', 'showSearch'),
        ('warning_on_close', 'warningOnClose'),
        ('url_entry_field', 'urlEntryField'),
        ('resource_search', 'resourceSearch'),
        ('minimize_to_tray', 'minimizeToTray'),
        ('location_specific', 'locationSpecific'),
    )

    def __init__(self, description='', customization_group='',
                 initial_state='', customization_type='', link_type='',
                 webtop_type='', show_search=False, warning_on_close=False,
                 url_entry_field=False, resource_search=False,
                 minimize_to_tray=False, location_specific=False):
        self.description = description
        self.customization_group = customization_group
        self.initial_state = initial_state
        self.customization_type = customization_type
        self.link_type = link_type
        self.webtop_type = webtop_type
        self.show_search = show_search
        self.warning_on_close = warning_on_close
        self.url_entry_field = url_entry_field
        self.resource_search = resource_search
        self.minimize_to_tray = minimize_to_tray
        self.location_specific = location_specific

    def to_json(self):
        payload = {}
        if self.description:
            payload['description'] = self.description
        payload['customizationGroup'] = self.customization_group
        for attr, key in self._ENUM_FIELDS:
            if getattr(self, attr):
                payload[key] = getattr(self, attr)
        for attr, key in self._BOOLED_FIELDS:
            payload[key] = booled_string(getattr(self, attr))
        return payload

    def _load(self, data):
        self.description = data.get('description', '')
        self.customization_group = data.get('customizationGroup', '')
        for attr, key in self._ENUM_FIELDS:
            setattr(self, attr, data.get(key, ''))
        for attr, key in self._BOOLED_FIELDS:
            setattr(self, attr, parse_booled_string(data.get(key)))

    @classmethod
    def from_json(cls, data):
        obj = cls()
        obj._load(data)
        return obj


class Webtop(WebtopConfig):
    def __init__(self, name='', partition='', tm_partition='', **kwargs):
        WebtopConfig.__init__(self, **kwargs)
        self.name = name
        self.partition = partition
        self.tm_partition = tm_partition

    @classmethod
    def with_config(cls, config, name, partition='', tm_partition=''):
        webtop = cls.from_json(config.to_json())
        webtop.name = name
        webtop.partition = partition
        webtop.tm_partition = tm_partition
        return webtop

    def to_json(self):
        payload = _omit_empty({'tmPartition': self.tm_partition,
                               'partition': self.partition})
        payload['name'] = self.name
        payload.update(WebtopConfig.to_json(self))
        return payload

    def _load(self, data):
        WebtopConfig._load(self, data)
        self.name = data.get('name', '')
        self.partition = data.get('partition', '')
        self.tm_partition = data.get('tmPartition', '')


class WebtopRead(Webtop):
    """A webtop as returned by GET, with its read-only fields."""

    def __init__(self, full_path='', self_link='',
                 customization_group_reference='', generation=0, **kwargs):
        Webtop.__init__(self, **kwargs)
        self.full_path = full_path
        self.self_link = self_link
        self.customization_group_reference = customization_group_reference
        self.generation = generation

    def _load(self, data):
        Webtop._load(self, data)
        self.full_path = data.get('fullPath', '')
        self.self_link = data.get('selfLink', '')
        reference = data.get('customizationGroupReference') or {}
        self.customization_group_reference = reference.get('link', '')
        self.generation = data.get('generation', 0)


class ILXWorkspace(object):
    def __init__(self, name='', full_path='', generation=0, self_link='',
                 node_version='', staged_directory='', version='',
                 extensions=None, rules=None):
        self.name = name
        self.full_path = full_path
        self.generation = generation
        self.self_link = self_link
        self.node_version = node_version
        self.staged_directory = staged_directory
        self.version = version
        # extension name -> list of file names
        self.extensions = extensions or {}
        self.rules = rules or []

    def to_json(self):
        return {'name': self.name}

    @classmethod
    def from_json(cls, data):
        extensions = {}
        for ext in data.get('extensions') or []:
            extensions[ext.get('name', '')] = [
                f.get('name', '') for f in ext.get('files') or []]
        return cls(
            name=data.get('name', ''),
            full_path=data.get('fullPath', ''),
            generation=data.get('generation', 0),
            self_link=data.get('selfLink', ''),
            node_version=data.get('nodeVersion', ''),
            staged_directory=data.get('stagedDirectory', ''),
            version=data.get('version', ''),
            extensions=extensions,
            rules=[r.get('name', '') for r in data.get('rules') or []])


class ExtensionConfig(object):
    def __init__(self, name, workspace_name, partition='Common'):
        self.name = name
        self.partition = partition
        self.workspace_name = workspace_name


class DNSResolverForwardZone(object):
    def __init__(self, name='', nameservers=None):
        self.name = name
        self.nameservers = nameservers or []

    def to_json(self):
        payload = {'name': self.name}
        if self.nameservers:
            payload['nameservers'] = [{'name': ns} for ns in self.nameservers]
        return payload

    @classmethod
    def from_json(cls, data):
        return cls(name=data.get('name', ''),
                   nameservers=[ns.get('name', '')
                                for ns in data.get('nameservers') or []])


class DNSResolver(object):
    _FIELDS = (
        ('description', 'description'),
        ('answer_default_zones', 'answerDefaultZones'),
        ('cache_size', 'cacheSize'),
        ('randomize_query_name_case', 'randomizeQueryNameCase'),
        ('route_domain', 'routeDomain'),
        ('type', 'type'),
        ('use_ipv4', 'useIpv4'),
        ('use_ipv6', 'useIpv6'),
        ('use_tcp', 'useTcp'),
        ('use_udp', 'useUdp'),
    )

    def __init__(self, name='', full_path='', forward_zones=None, **fields):
        self.name = name
        self.full_path = full_path
        for attr, _ in self._FIELDS:
            setattr(self, attr, fields.pop(attr, 0 if attr == 'cache_size'
                                           else ''))
        if fields:
            raise TypeError('unexpected fields: {}'.format(sorted(fields)))
        self.forward_zones = forward_zones

    def to_json(self):
        payload = {'name': self.name}
        for attr, key in self._FIELDS:
            payload[key] = getattr(self, attr)
        if self.forward_zones:
            payload['forwardZones'] = [z.to_json()
                                       for z in self.forward_zones]
        return _omit_empty(payload)

    @classmethod
    def from_json(cls, data):
        fields = dict((attr, data.get(key)) for attr, key in cls._FIELDS
                      if data.get(key) is not None)
        zones = [DNSResolverForwardZone.from_json(z)
                 for z in data.get('forwardZones') or []]
        return cls(name=data.get('name', ''),
                   full_path=data.get('fullPath', ''),
                   forward_zones=zones, **fields)
