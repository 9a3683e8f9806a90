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

from f5_bigip_provider.exceptions import BigIPRequestError, Diagnostic
from f5_bigip_provider.models import ExtensionConfig
from f5_bigip_provider.schema import (TYPE_INT, TYPE_LIST, TYPE_STRING,
                                      Resource, Schema)

log = logging.getLogger(__name__)

DEFAULT_PARTITION = 'Common'


def resource_bigip_ilx_workspace():
    return Resource(
        create=resource_bigip_ilx_workspace_create,
        read=resource_bigip_ilx_workspace_read,
        update=resource_bigip_ilx_workspace_update,
        delete=resource_bigip_ilx_workspace_delete,
        schema={
            'name': Schema(TYPE_STRING, required=True, force_new=True),
            'partition': Schema(
                TYPE_STRING, optional=True, force_new=True,
                description='Partition holding the workspace files on disk. '
                            'Defaults to Common.'),
            'extensions': Schema(
                TYPE_LIST, optional=True,
                description='Node.js extensions to create in the workspace.',
                elem={
                    'name': Schema(TYPE_STRING, required=True),
                    'source_path': Schema(
                        TYPE_STRING, optional=True,
                        description='Local directory whose index.js and '
                                    'package.json are uploaded into the '
                                    'extension.'),
                }),
            'rules_path': Schema(
                TYPE_STRING, optional=True,
                description='Local directory whose index.js and package.json '
                            'are uploaded into the workspace rules.'),
            'full_path': Schema(TYPE_STRING, computed=True),
            'node_version': Schema(TYPE_STRING, computed=True),
            'staged_directory': Schema(TYPE_STRING, computed=True),
            'version': Schema(TYPE_STRING, computed=True),
            'generation': Schema(TYPE_INT, computed=True),
        })


def _sync_extensions(d, client, existing=()):
    """Create missing extensions and upload extension and rule files."""
    name = d.get('name')
    partition = d.get('partition') or DEFAULT_PARTITION
    for ext in d.get('extensions'):
        opts = ExtensionConfig(ext['name'], name, partition=partition)
        if ext['name'] not in existing:
            log.info('Creating ILX extension %s in workspace %s',
                     ext['name'], name)
            client.create_extension(opts)
        if ext.get('source_path'):
            client.upload_extension_files(opts, ext['source_path'])

    rules_path = d.get('rules_path')
    if rules_path:
        client.upload_rule_files(
            ExtensionConfig('', name, partition=partition), rules_path)


def resource_bigip_ilx_workspace_create(d, meta):
    client = meta
    name = d.get('name')
    log.info('Creating ILX workspace %s', name)
    try:
        client.create_workspace(name)
    except BigIPRequestError as e:
        return [Diagnostic.from_error('error creating workspace {}'.format(e))]
    d.set_id(name)

    try:
        _sync_extensions(d, client)
    except BigIPRequestError as e:
        return [Diagnostic.from_error('error creating workspace {}'.format(e))]
    return resource_bigip_ilx_workspace_read(d, meta)


def resource_bigip_ilx_workspace_read(d, meta):
    client = meta
    name = d.get('name') or d.id
    try:
        workspace = client.get_workspace(name)
    except BigIPRequestError as e:
        return [Diagnostic.from_error('error reading workspace {}'.format(e))]
    if workspace is None:
        log.warning('workspace (%s) not found, removing from state', name)
        d.set_id('')
        return []

    d.set_id(workspace.name)
    d.set('full_path', workspace.full_path)
    d.set('node_version', workspace.node_version)
    d.set('staged_directory', workspace.staged_directory)
    d.set('version', workspace.version)
    d.set('generation', workspace.generation)
    return []


def resource_bigip_ilx_workspace_update(d, meta):
    client = meta
    name = d.get('name')
    log.info('Updating ILX workspace %s', name)
    try:
        client.patch_workspace(name)
        workspace = client.get_workspace(name)
        existing = workspace.extensions if workspace is not None else {}
        _sync_extensions(d, client, existing=existing)
    except BigIPRequestError as e:
        return [Diagnostic.from_error('error updating workspace {}'.format(e))]
    return resource_bigip_ilx_workspace_read(d, meta)


def resource_bigip_ilx_workspace_delete(d, meta):
    client = meta
    log.info('Deleting ILX workspace %s', d.get('name'))
    try:
        client.delete_workspace(d.get('name'))
    except BigIPRequestError as e:
        return [Diagnostic.from_error('error deleting workspace {}'.format(e))]
    d.set_id('')
    return []
