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
from f5_bigip_provider.models import (CUSTOMIZATION_TYPES, INITIAL_STATES,
                                      LINK_TYPES, WEBTOP_TYPES, Webtop,
                                      WebtopConfig)
from f5_bigip_provider.schema import (TYPE_BOOL, TYPE_INT, TYPE_STRING,
                                      Resource, Schema, string_in_slice)

log = logging.getLogger(__name__)

# attribute name -> WebtopConfig field
_BOOL_ATTRIBUTES = (
    ('show_search', 'show_search'),
    ('warning_on_close', 'warning_on_close'),
    ('url_entry_field', 'url_entry_field'),
    ('resource_search', 'resource_search'),
    ('minimize_to_tray', 'minimize_to_tray'),
    ('location_specific', 'location_specific'),
)


def _bool_attribute(what):
    return Schema(TYPE_BOOL, optional=True,
                  description='Whether {}. This field is updatable.'.format(
                      what))


def resource_bigip_apm_webtop():
    return Resource(
        create=resource_bigip_apm_webtop_create,
        read=resource_bigip_apm_webtop_read,
        update=resource_bigip_apm_webtop_update,
        delete=resource_bigip_apm_webtop_delete,
        schema={
            'name': Schema(
                TYPE_STRING, required=True, force_new=True,
                description='The name of the webtop. This field is not '
                            'updatable.'),
            'tm_partition': Schema(
                TYPE_STRING, optional=True, force_new=True,
                description='The tmPartition of the webtop. This field is '
                            'not updatable.'),
            'partition': Schema(
                TYPE_STRING, optional=True, force_new=True,
                description='The partition of the webtop. This field is not '
                            'updatable.'),
            'description': Schema(
                TYPE_STRING, optional=True,
                description='The description of the webtop. This field is '
                            'updatable.'),
            'customization_group': Schema(
                TYPE_STRING, required=True,
                description='The customization group of the webtop. This '
                            'field is updatable.'),
            'initial_state': Schema(
                TYPE_STRING, optional=True, computed=True,
                validate=string_in_slice(INITIAL_STATES),
                description='The initial state of the webtop. This field is '
                            'updatable.'),
            'customization_type': Schema(
                TYPE_STRING, optional=True, computed=True,
                validate=string_in_slice(CUSTOMIZATION_TYPES),
                description='The customization type of the webtop. This '
                            'field is updatable.'),
            'link_type': Schema(
                TYPE_STRING, optional=True, computed=True,
                validate=string_in_slice(LINK_TYPES),
                description='The link type of the webtop. This field is '
                            'updatable.'),
            'type': Schema(
                TYPE_STRING, optional=True, computed=True,
                validate=string_in_slice(WEBTOP_TYPES),
                description='The type of the webtop. This field is '
                            'updatable.'),
            'show_search': _bool_attribute('to show search in the webtop'),
            'warning_on_close': _bool_attribute('to show a warning on close'),
            'url_entry_field': _bool_attribute('to show the URL entry field'),
            'resource_search': _bool_attribute('to enable resource search'),
            'minimize_to_tray': _bool_attribute('to minimize to tray'),
            'location_specific': _bool_attribute(
                'the webtop is location specific'),
            'full_path': Schema(
                TYPE_STRING, computed=True,
                description='The full path of the webtop.'),
            'self_link': Schema(
                TYPE_STRING, computed=True,
                description='The self link of the webtop.'),
            'customization_group_reference': Schema(
                TYPE_STRING, computed=True,
                description='The customization group reference of the '
                            'webtop.'),
            'generation': Schema(
                TYPE_INT, computed=True,
                description='The generation of the webtop.'),
        })


def _webtop_config(d):
    config = WebtopConfig(
        description=d.get('description'),
        customization_group=d.get('customization_group'),
        initial_state=d.get('initial_state'),
        customization_type=d.get('customization_type'),
        link_type=d.get('link_type'),
        webtop_type=d.get('type'))
    for attr, field in _BOOL_ATTRIBUTES:
        setattr(config, field, d.get(attr))
    return config


def _webtop_path(d):
    """Return the /Partition/Name path of the declared webtop."""
    name = d.get('name')
    partition = d.get('partition')
    if name.startswith('/') or not partition:
        return name
    return '/{}/{}'.format(partition.strip('/'), name)


def resource_bigip_apm_webtop_create(d, meta):
    client = meta
    webtop = Webtop.with_config(_webtop_config(d), d.get('name'),
                                partition=d.get('partition'),
                                tm_partition=d.get('tm_partition'))
    log.info('Creating webtop %s', webtop.name)
    try:
        client.create_webtop(webtop)
    except BigIPRequestError as e:
        return [Diagnostic.from_error('error creating webtop {}'.format(e))]
    d.set_id(_webtop_path(d))
    return resource_bigip_apm_webtop_read(d, meta)


def resource_bigip_apm_webtop_read(d, meta):
    client = meta
    name = d.id or _webtop_path(d)
    log.info('Reading webtop %s', name)
    try:
        webtop = client.get_webtop(name)
    except BigIPRequestError as e:
        if is_not_found(e):
            log.warning('webtop (%s) not found, removing from state',
                        name)
            d.set_id('')
            return []
        return [Diagnostic.from_error('error reading webtop {}'.format(e))]

    d.set_id(webtop.full_path or name)
    d.set('description', webtop.description)
    d.set('customization_group', webtop.customization_group)
    d.set('initial_state', webtop.initial_state)
    d.set('customization_type', webtop.customization_type)
    d.set('link_type', webtop.link_type)
    d.set('type', webtop.webtop_type)
    for attr, field in _BOOL_ATTRIBUTES:
        d.set(attr, getattr(webtop, field))
    d.set('full_path', webtop.full_path)
    d.set('self_link', webtop.self_link)
    d.set('customization_group_reference',
          webtop.customization_group_reference)
    d.set('generation', webtop.generation)
    return []


def resource_bigip_apm_webtop_update(d, meta):
    client = meta
    name = d.id
    log.info('Updating webtop %s', name)
    try:
        client.modify_webtop(name, _webtop_config(d))
    except BigIPRequestError as e:
        return [Diagnostic.from_error('error updating webtop {}'.format(e))]
    return resource_bigip_apm_webtop_read(d, meta)


def resource_bigip_apm_webtop_delete(d, meta):
    client = meta
    name = d.id or _webtop_path(d)
    log.info('Deleting webtop %s', name)
    try:
        client.delete_webtop(name)
    except BigIPRequestError as e:
        return [Diagnostic.from_error('error deleting webtop {}'.format(e))]
    d.set_id('')
    return []
