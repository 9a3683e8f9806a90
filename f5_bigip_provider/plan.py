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

"""Plan and apply a declaration of resources against the state file.

This is the graph walk a Terraform core would run, reduced to what the
provider needs: handlers are called synchronously, one at a time, in
declaration order, with deletes last.

State layout::

    {"version": 1,
     "resources": {
         "<type>.<label>": {"mode": "managed", "type": ..., "id": ...,
                            "attributes": {...}},
         "data.<type>.<label>": {"mode": "data", ...}}}
"""

import copy
import logging

from f5_bigip_provider.exceptions import (ConfigError, Diagnostic,
                                          has_error)
from f5_bigip_provider.schema import normalize_value

log = logging.getLogger(__name__)

STATE_VERSION = 1

MODE_MANAGED = 'managed'
MODE_DATA = 'data'

ACTION_CREATE = 'create'
ACTION_UPDATE = 'update'
ACTION_REPLACE = 'replace'
ACTION_DELETE = 'delete'
ACTION_READ = 'read'
ACTION_FORGET = 'forget'
ACTION_NOOP = 'noop'


class Change(object):
    """A planned action for a single address."""

    def __init__(self, action, address, type, mode=MODE_MANAGED,
                 config=None, prior=None, diff=()):
        self.action = action
        self.address = address
        self.type = type
        self.mode = mode
        self.config = config
        self.prior = prior
        self.diff = list(diff)

    def __repr__(self):
        return 'Change({}, {})'.format(self.action, self.address)


def empty_state():
    return {'version': STATE_VERSION, 'resources': {}}


def address_of(item, mode=MODE_MANAGED):
    try:
        address = '{}.{}'.format(item['type'], item['label'])
    except (KeyError, TypeError):
        raise ConfigError('each declared item needs "type" and "label": '
                          '{!r}'.format(item))
    if mode == MODE_DATA:
        return 'data.' + address
    return address


def split_address(address):
    """Return (mode, type, label) for a resource address."""
    parts = address.split('.')
    if parts[0] == 'data' and len(parts) == 3:
        return MODE_DATA, parts[1], parts[2]
    if len(parts) == 2:
        return MODE_MANAGED, parts[0], parts[1]
    raise ConfigError('invalid resource address: {}'.format(address))


def diff_attributes(resource, config, prior_attributes):
    """Return the declared attributes whose value differs from state."""
    changed = []
    for key, s in resource.schema.items():
        if s.is_computed_only():
            continue
        declared = config.get(key)
        if declared is None and s.computed:
            continue
        old = prior_attributes.get(key)
        if normalize_value(s, declared) != normalize_value(s, old):
            changed.append(key)
    return changed


def plan(provider, declaration, state):
    """Compute the changes that bring state in line with declaration.

    Returns:
        (list of Change, list of Diagnostic)
    """
    resources = state.get('resources', {})
    changes = []
    diags = []
    declared = set()

    for mode, key in ((MODE_MANAGED, 'resources'), (MODE_DATA, 'data')):
        for item in declaration.get(key) or []:
            address = address_of(item, mode)
            if address in declared:
                diags.append(Diagnostic.from_error(
                    'duplicate resource address: {}'.format(address)))
                continue
            declared.add(address)

            if mode == MODE_DATA:
                resource = provider.data_source(item['type'])
            else:
                resource = provider.resource(item['type'])
            config = item.get('attributes') or {}
            errors = resource.validate(config)
            if errors:
                for err in errors:
                    err.summary = '{}: {}'.format(address, err.summary)
                diags += errors
                continue

            prior = resources.get(address)
            if mode == MODE_DATA:
                changes.append(Change(ACTION_READ, address, item['type'],
                                      mode, config=config, prior=prior))
            elif prior is None:
                changes.append(Change(ACTION_CREATE, address, item['type'],
                                      config=config))
            else:
                diff = diff_attributes(resource, config,
                                       prior.get('attributes', {}))
                if set(diff) & set(resource.force_new_keys()):
                    action = ACTION_REPLACE
                elif diff:
                    action = ACTION_UPDATE
                else:
                    action = ACTION_NOOP
                changes.append(Change(action, address, item['type'],
                                      config=config, prior=prior, diff=diff))

    for address, entry in resources.items():
        if address in declared:
            continue
        if entry.get('mode') == MODE_DATA:
            changes.append(Change(ACTION_FORGET, address, entry['type'],
                                  MODE_DATA, prior=entry))
        else:
            changes.append(Change(ACTION_DELETE, address, entry['type'],
                                  prior=entry))
    return changes, diags


def _entry(mode, type_name, d):
    return {'mode': mode, 'type': type_name, 'id': d.id,
            'attributes': d.state()}


def refresh(provider, meta, state):
    """Re-read every managed resource in state.

    Resources that no longer exist on the BIG-IP are dropped.
    """
    resources = state.setdefault('resources', {})
    diags = []
    for address in list(resources):
        entry = resources[address]
        if entry.get('mode') != MODE_MANAGED:
            continue
        resource = provider.resource(entry['type'])
        d = resource.data(state=entry.get('attributes'), id=entry.get('id'))
        errors = resource.read(d, meta)
        if has_error(errors):
            diags += errors
            continue
        diags += errors
        if not d.id:
            log.warning('%s no longer exists, removing from state', address)
            del resources[address]
        else:
            resources[address] = _entry(MODE_MANAGED, entry['type'], d)
    return diags


def _delete(resource, meta, resources, change):
    prior = change.prior
    d = resource.data(state=prior.get('attributes'), id=prior.get('id'))
    diags = resource.delete(d, meta)
    if not has_error(diags):
        resources.pop(change.address, None)
    return diags


def _create(resource, meta, resources, change):
    d = resource.data(config=change.config)
    diags = resource.create(d, meta)
    if d.id:
        resources[change.address] = _entry(MODE_MANAGED, change.type, d)
    return diags


def apply_change(provider, meta, resources, change):
    log.info('%s: %s', change.address, change.action)
    if change.action == ACTION_NOOP:
        return []
    if change.action == ACTION_FORGET:
        resources.pop(change.address, None)
        return []
    if change.action == ACTION_READ:
        data_source = provider.data_source(change.type)
        d = data_source.data(config=change.config)
        diags = data_source.read(d, meta)
        if d.id and not has_error(diags):
            resources[change.address] = _entry(MODE_DATA, change.type, d)
        return diags

    resource = provider.resource(change.type)
    if change.action == ACTION_CREATE:
        return _create(resource, meta, resources, change)
    if change.action == ACTION_DELETE:
        return _delete(resource, meta, resources, change)
    if change.action == ACTION_REPLACE:
        diags = _delete(resource, meta, resources, change)
        if has_error(diags):
            return diags
        return diags + _create(resource, meta, resources, change)
    if change.action == ACTION_UPDATE:
        prior = change.prior
        d = resource.data(config=change.config,
                          state=prior.get('attributes'),
                          id=prior.get('id'))
        diags = resource.update(d, meta)
        if has_error(diags):
            return diags
        if d.id:
            resources[change.address] = _entry(MODE_MANAGED, change.type, d)
        else:
            resources.pop(change.address, None)
        return diags
    raise ValueError('unknown action {}'.format(change.action))


def apply(provider, meta, declaration, state, refresh_first=True):
    """Refresh, plan and apply.

    A failed handler does not stop the other changes; its address keeps
    the prior state.

    Returns:
        (new state, list of Diagnostic)
    """
    state = copy.deepcopy(state or empty_state())
    state['version'] = STATE_VERSION
    resources = state.setdefault('resources', {})
    diags = []
    if refresh_first:
        diags += refresh(provider, meta, state)

    changes, plan_diags = plan(provider, declaration, state)
    diags += plan_diags

    # deletes last, declaration order otherwise
    ordered = ([c for c in changes if c.action != ACTION_DELETE] +
               [c for c in changes if c.action == ACTION_DELETE])
    for change in ordered:
        errors = apply_change(provider, meta, resources, change)
        for err in errors:
            if err.is_error():
                log.error('%s: %s', change.address, err)
        diags += errors
    return state, diags


def import_resource(provider, meta, state, address, import_id):
    """Adopt an existing BIG-IP object into state under address."""
    state = copy.deepcopy(state or empty_state())
    resources = state.setdefault('resources', {})
    mode, type_name, _ = split_address(address)
    if mode != MODE_MANAGED:
        raise ConfigError('data sources cannot be imported: {}'.format(
            address))
    if address in resources:
        return state, [Diagnostic.from_error(
            'Resource already managed: {}'.format(address))]
    resource = provider.resource(type_name)
    if resource.importer is None:
        return state, [Diagnostic.from_error(
            'resource {} does not support import'.format(type_name))]

    d = resource.data(state={}, id=import_id)
    diags = []
    for imported in resource.importer(d, meta):
        diags += resource.read(imported, meta)
        if has_error(diags):
            return state, diags
        if not imported.id:
            return state, diags + [Diagnostic.from_error(
                'Cannot import non-existent remote object: {} ({})'.format(
                    address, import_id))]
        resources[address] = _entry(MODE_MANAGED, type_name, imported)
    return state, diags
