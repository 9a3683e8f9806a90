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

"""Attribute schemas and the per-call resource data they describe.

A resource is a dict of attribute name to Schema plus the handlers that
move those attributes to and from BIG-IP. ResourceData is handed to every
handler: it exposes the declared configuration, the last known state and
the resource ID, and collects the new state the handler writes.
"""

import copy
import re

from f5_bigip_provider.exceptions import Diagnostic, SchemaError


TYPE_STRING = 'string'
TYPE_INT = 'int'
TYPE_BOOL = 'bool'
TYPE_LIST = 'list'

_ZERO_VALUES = {
    TYPE_STRING: '',
    TYPE_INT: 0,
    TYPE_BOOL: False,
}

F5_NAME_WITH_DIRECTORY = re.compile(r'^/[\w.-]+/([\w.-]+/)?[\w.-]+$')


class Schema(object):
    """Describes a single attribute.

    Args:
        type: one of TYPE_STRING, TYPE_INT, TYPE_BOOL, TYPE_LIST
        elem: element Schema for a list of scalars, or a dict of Schemas
            for a list of objects
        validate: callable(value, key) returning a list of error strings
    """

    def __init__(self, type, required=False, optional=False,
                 computed=False, force_new=False, description='',
                 validate=None, elem=None):
        self.type = type
        self.required = required
        self.optional = optional
        self.computed = computed
        self.force_new = force_new
        self.description = description
        self.validate = validate
        self.elem = elem

    def zero_value(self):
        if self.type == TYPE_LIST:
            return []
        return _ZERO_VALUES[self.type]

    def is_computed_only(self):
        return self.computed and not (self.required or self.optional)


class Resource(object):
    """A resource or data source: schema plus CRUD handlers.

    Handlers take (ResourceData, meta) and return a list of Diagnostic.
    A data source only sets read.
    """

    def __init__(self, schema, create=None, read=None, update=None,
                 delete=None, importer=None):
        self.schema = schema
        self.create = create
        self.read = read
        self.update = update
        self.delete = delete
        self.importer = importer

    def is_data_source(self):
        return self.create is None and self.delete is None

    def data(self, config=None, state=None, id=''):
        return ResourceData(self.schema, config=config, state=state, id=id)

    def force_new_keys(self):
        return [k for k, s in self.schema.items() if s.force_new]

    def validate(self, config):
        """Check a declared attribute map against the schema."""
        return _validate_block(self.schema, config or {}, '')

    def internal_validate(self, name):
        errors = []
        for key, s in self.schema.items():
            if s.required and s.optional:
                errors.append('{}.{}: required and optional are exclusive'
                              .format(name, key))
            if s.required and s.computed:
                errors.append('{}.{}: required attributes cannot be computed'
                              .format(name, key))
            if s.force_new and s.is_computed_only():
                errors.append('{}.{}: computed-only attribute cannot be '
                              'force_new'.format(name, key))
            if not (s.required or s.optional or s.computed):
                errors.append('{}.{}: one of required, optional or computed '
                              'must be set'.format(name, key))
            if s.type == TYPE_LIST and s.elem is None:
                errors.append('{}.{}: list attribute needs elem'
                              .format(name, key))
        return errors


def import_state_passthrough(d, meta):
    """Importer that takes the import ID as the resource ID."""
    return [d]


class ResourceData(object):
    """Attribute access for one handler invocation.

    With config=None the data is in refresh mode: every attribute is
    served from the prior state.
    """

    def __init__(self, schema, config=None, state=None, id=''):
        self._schema = schema
        self._config = copy.deepcopy(config) if config is not None else None
        self._state = copy.deepcopy(state or {})
        self._written = {}
        self._id = id

    @property
    def id(self):
        return self._id

    def set_id(self, id):
        self._id = id or ''

    def _schema_for(self, key):
        try:
            return self._schema[key]
        except KeyError:
            raise SchemaError('Invalid attribute name: {}'.format(key))

    def get(self, key):
        s = self._schema_for(key)
        if key in self._written:
            return copy.deepcopy(self._written[key])
        if self._config is None:
            value = self._state.get(key)
        elif self._config.get(key) is not None:
            value = self._config[key]
        elif s.computed:
            value = self._state.get(key)
        else:
            value = None
        if value is None:
            return s.zero_value()
        return copy.deepcopy(value)

    def get_ok(self, key):
        value = self.get(key)
        return value, value != self._schema[key].zero_value()

    def set(self, key, value):
        s = self._schema_for(key)
        if value is None:
            value = s.zero_value()
        errors = _check_type(s, value, key)
        if errors:
            raise SchemaError('; '.join(errors))
        self._written[key] = copy.deepcopy(value)

    def has_change(self, key):
        s = self._schema_for(key)
        if self._config is None:
            return key in self._written
        old = self._state.get(key, s.zero_value())
        return self.get(key) != old

    def state(self):
        """Return the attribute map to persist, or None when gone."""
        if not self._id:
            return None
        return dict((key, self.get(key)) for key in self._schema)


def string_in_slice(valid):
    def _validate(value, key):
        if value not in valid:
            return ['expected {} to be one of {}, got {}'.format(
                key, list(valid), value)]
        return []
    return _validate


def validate_f5_name_with_directory(value, key):
    if not F5_NAME_WITH_DIRECTORY.match(value or ''):
        return ['{} must match /Partition/Name and contain letters, numbers '
                'or [._-]. e.g. /Common/my-resolver, got {!r}'
                .format(key, value)]
    return []


def _check_type(s, value, key):
    if s.type == TYPE_STRING and not isinstance(value, str):
        return ['{}: expected a string, got {!r}'.format(key, value)]
    if s.type == TYPE_BOOL and not isinstance(value, bool):
        return ['{}: expected a bool, got {!r}'.format(key, value)]
    if s.type == TYPE_INT and (isinstance(value, bool) or
                               not isinstance(value, int)):
        return ['{}: expected an int, got {!r}'.format(key, value)]
    if s.type == TYPE_LIST:
        if not isinstance(value, list):
            return ['{}: expected a list, got {!r}'.format(key, value)]
        errors = []
        for i, item in enumerate(value):
            item_key = '{}.{}'.format(key, i)
            if isinstance(s.elem, dict):
                if not isinstance(item, dict):
                    errors.append('{}: expected an object, got {!r}'.format(
                        item_key, item))
                    continue
                for sub_key, sub_value in item.items():
                    if sub_key in s.elem and sub_value is not None:
                        errors += _check_type(
                            s.elem[sub_key], sub_value,
                            '{}.{}'.format(item_key, sub_key))
            elif s.elem is not None:
                errors += _check_type(s.elem, item, item_key)
        return errors
    return []


def _validate_block(schema, config, prefix):
    diags = []
    for key in config:
        if key not in schema:
            diags.append(Diagnostic.from_error(
                'Unsupported argument: {}{}'.format(prefix, key)))

    for key, s in schema.items():
        path = prefix + key
        value = config.get(key)
        if value is None:
            if s.required:
                diags.append(Diagnostic.from_error(
                    'Missing required argument: {}'.format(path)))
            continue
        if s.is_computed_only():
            diags.append(Diagnostic.from_error(
                'Value for unconfigurable attribute: {}'.format(path)))
            continue
        errors = _check_type(s, value, path)
        if errors:
            diags += [Diagnostic.from_error(e) for e in errors]
            continue
        if s.validate is not None:
            diags += [Diagnostic.from_error(e) for e in s.validate(value, path)]
        if s.type == TYPE_LIST and isinstance(s.elem, dict):
            for i, item in enumerate(value):
                diags += _validate_block(s.elem, item,
                                         '{}.{}.'.format(path, i))
    return diags


def normalize_value(s, value):
    """Fill in zero values for unset nested attributes of value.

    Used to compare a declared value against the state form written by
    a read handler.
    """
    if value is None:
        return s.zero_value()
    if s.type == TYPE_LIST and isinstance(s.elem, dict):
        items = []
        for item in value:
            if not isinstance(item, dict):
                items.append(item)
                continue
            items.append(dict((k, normalize_value(sub, item.get(k)))
                              for k, sub in s.elem.items()))
        return items
    return value
