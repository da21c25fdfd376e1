#!/usr/bin/env python3

import setuptools

setuptools.setup(
    name='judgetools',
    version='1.0.0',
    description='Judging engine for programming submissions',
    packages=setuptools.find_packages(include=['judgetools', 'judgetools.*']),
    package_data={'judgetools': ['config/*.yaml']},
    python_requires='>=3.12',
    install_requires=[
        'PyYAML',
        'colorlog>=6',
        'pydantic>=2',
    ],
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        'console_scripts': [
            'judgesubmission=judgetools.judgesubmission:main',
        ],
    },
)
