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
                                          SchemaError)
from f5_bigip_provider.schema import (TYPE_BOOL, TYPE_INT, TYPE_STRING,
                                      Resource, Schema)

log = logging.getLogger(__name__)


def _computed(type, description):
    return Schema(type, computed=True, description=description)


def data_source_bigip_apm_webtop():
    return Resource(
        read=data_source_bigip_apm_webtop_read,
        schema={
            'name': Schema(TYPE_STRING, required=True,
                           description='Name of the APM Webtop'),
            'full_path': _computed(
                TYPE_STRING, 'The full path of the APM Webtop'),
            'generation': _computed(
                TYPE_INT, 'The generation of the APM Webtop'),
            'self_link': _computed(
                TYPE_STRING, 'The self link of the APM Webtop'),
            'customization_group': _computed(
                TYPE_STRING, 'The customization group of the APM Webtop'),
            'description': _computed(
                TYPE_STRING, 'The description of the APM Webtop'),
            'fallback_section_initial_state': _computed(
                TYPE_STRING,
                'The fallback section initial state of the APM Webtop'),
            'link_type': _computed(
                TYPE_STRING, 'The link type of the APM Webtop'),
            'location_specific': _computed(
                TYPE_BOOL, 'Whether the APM Webtop is location specific'),
            'minimize_to_tray': _computed(
                TYPE_BOOL, 'Whether the APM Webtop minimizes to tray'),
            'show_search': _computed(
                TYPE_BOOL, 'Whether the APM Webtop shows search'),
            'show_url_entry_field': _computed(
                TYPE_BOOL, 'Whether the APM Webtop shows URL entry field'),
            'warn_when_closed': _computed(
                TYPE_BOOL, 'Whether the APM Webtop warns when closed'),
            'webtop_type': _computed(
                TYPE_STRING, 'The type of the APM Webtop'),
        })


def data_source_bigip_apm_webtop_read(d, meta):
    client = meta
    name = d.get('name')
    log.info('Retrieving APM Webtop %s', name)
    try:
        webtop = client.get_webtop(name)
    except BigIPRequestError as e:
        return [Diagnostic.from_error(e)]

    try:
        set_apm_webtop_resource_data(d, webtop)
    except SchemaError as e:
        d.set_id('')
        return [Diagnostic.from_error(e)]
    log.info('Retrieved APM Webtop')
    d.set_id(webtop.full_path)
    return []


def set_apm_webtop_resource_data(d, webtop):
    d.set('name', webtop.name)
    d.set('full_path', webtop.full_path)
    d.set('generation', webtop.generation)
    d.set('self_link', webtop.self_link)
    d.set('customization_group', webtop.customization_group)
    d.set('description', webtop.description)
    d.set('fallback_section_initial_state', webtop.initial_state)
    d.set('link_type', webtop.link_type)
    d.set('location_specific', webtop.location_specific)
    d.set('minimize_to_tray', webtop.minimize_to_tray)
    d.set('show_search', webtop.show_search)
    d.set('show_url_entry_field', webtop.url_entry_field)
    d.set('warn_when_closed', webtop.warning_on_close)
    d.set('webtop_type', webtop.webtop_type)
