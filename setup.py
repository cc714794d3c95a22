#!/usr/bin/env python3
from setuptools import setup, find_packages

setup(
    name='lspcheck',
    version='0.1.0',
    description='A conformance harness for LSP servers',
    package_dir={'': 'src'},
    packages=find_packages('src'),
    python_requires='>=3.10',
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        'console_scripts': [
            'lspcheck=lspcheck.main:main',
        ],
    },
)
