#!/usr/bin/env python

# Copyright (c) 2024 F5 Networks, Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#    http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#

import os
import re

from setuptools import setup
from setuptools import find_packages

here = os.path.abspath(os.path.dirname(__file__))


def _read_reqs(name):
    with open(os.path.join(here, name)) as f:
        return [line.strip() for line in f
                if line.strip() and not line.startswith('#')]


def _version():
    with open(os.path.join(here, 'f5_bigip_provider', '__init__.py')) as f:
        return re.search(r"^__version__ = '([^']+)'", f.read(), re.M).group(1)


setup(
    name='f5-bigip-provider',
    description='F5 Networks BIG-IP APM webtop, ILX workspace and DNS '
                'resolver provider',
    license='Apache License, Version 2.0',
    version=_version(),
    author='F5 Networks',
    keywords=['F5', 'big-ip', 'apm', 'ilx', 'dns'],
    python_requires='>=3.7',
    install_requires=_read_reqs('requirements.txt'),
    extras_require={'test': _read_reqs('requirements-test.txt')},
    entry_points={
        'console_scripts': [
            'f5-bigip-provider = f5_bigip_provider.bigipconfigdriver:main',
        ],
    },
    packages=find_packages(exclude=['*test', '*.test.*', 'test*', 'test']),
)
