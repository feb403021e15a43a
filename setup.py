#!/usr/bin/env python
# -*- coding: utf-8 -*-
import os

from setuptools import find_packages, setup

here = os.path.abspath(os.path.dirname(__file__))

# To update the package version number, edit kumitate/__version__.py
version = {}
with open(os.path.join(here, 'kumitate', '__version__.py')) as f:
    exec(f.read(), version)

with open(os.path.join(here, 'README.rst')) as readme_file:
    readme = readme_file.read()

setup(
    name='kumitate',
    version=version['__version__'],
    description="A client for a remote file-processing assembly service",
    long_description=readme + '\n\n',
    packages=find_packages(include=['kumitate', 'kumitate.*']),
    include_package_data=True,
    package_data={'kumitate.rest': ['schemas.yaml']},
    license="Apache Software License 2.0",
    zip_safe=False,
    keywords='kumitate',
    classifiers=[
        'Development Status :: 2 - Pre-Alpha',
        'Intended Audience :: Developers',
        'License :: OSI Approved :: Apache Software License',
        'Natural Language :: English',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.8',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
    ],
    python_requires='>=3.8',
    install_requires=[
        'cryptography>=36',
        'jsonschema',
        'openapi-schema-validator',
        'requests',
        'retrying',
        'ruamel.yaml',
        'urllib3',
        'yatiml'
    ],
    extras_require={
        'tests': ['pytest']
    }
)
