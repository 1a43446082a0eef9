"""
setup.py for NFeX - NF-e document import library.
"""

from setuptools import setup, find_packages

setup(
    name="nfex",
    version="0.1.0",
    description="Atomic import of Brazilian NF-e XML documents into a relational store",
    packages=find_packages(include=['nfex', 'nfex.*']),
    package_data={
        'nfex': ['config/default_config.yaml'],
    },
    python_requires='>=3.9',
    install_requires=[
        'click',
        'lxml',
        'pydantic>=2',
        'pyyaml',
        'sqlalchemy>=2'
    ],
    extras_require={
        'test': [
            'pytest',
            'pytest-asyncio'
        ]
    },
    entry_points={
        'console_scripts': [
            'nfex=nfex.cli:cli',
        ],
    },
)
