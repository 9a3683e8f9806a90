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

"""Errors and diagnostics returned by provider handlers."""

SEVERITY_ERROR = 'error'
SEVERITY_WARNING = 'warning'

# BIG-IP error code for "object not found"
NOT_FOUND_CODE = '01020036'


class ProviderError(Exception):
    def __init__(self, msg):
        Exception.__init__(self, msg)
        self.msg = msg


class ConfigError(ProviderError):
    pass


class SchemaError(ProviderError):
    pass


class BigIPRequestError(ProviderError):
    """An iControl REST call that returned an unexpected status.

    Args:
        msg: error text as reported by the REST session
        status_code: HTTP status of the response, if any
        text: raw response body
    """

    def __init__(self, msg, status_code=None, text=''):
        ProviderError.__init__(self, msg)
        self.status_code = status_code
        self.text = text


class Diagnostic(object):
    def __init__(self, severity, summary, detail=''):
        self.severity = severity
        self.summary = summary
        self.detail = detail

    @classmethod
    def from_error(cls, err):
        return cls(SEVERITY_ERROR, str(err))

    @classmethod
    def warning(cls, summary, detail=''):
        return cls(SEVERITY_WARNING, summary, detail)

    def is_error(self):
        return self.severity == SEVERITY_ERROR

    def __repr__(self):
        return 'Diagnostic({!r}, {!r})'.format(self.severity, self.summary)

    def __str__(self):
        if self.detail:
            return '{}: {}'.format(self.summary, self.detail)
        return self.summary


def has_error(diags):
    return any(d.is_error() for d in diags)


def is_not_found(err):
    """Return True when err reports a missing BIG-IP object."""
    if err is None:
        return False
    msg = str(err)
    return (NOT_FOUND_CODE in msg or
            'not found' in msg.lower() or
            '404' in msg)
