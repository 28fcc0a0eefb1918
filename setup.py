from setuptools import setup, find_packages
import re

# Read version from paystat/__init__.py
with open('paystat/__init__.py') as f:
    version = re.search(r'^__version__ = ["\']([^"\']+)["\']', f.read(), re.MULTILINE).group(1)

setup(
    name='pay-stat',
    version=version,
    packages=find_packages(include=['paystat', 'paystat.*']),
    install_requires=[
        'PyYAML>=6.0',
        'click>=8.0',
        'pydantic>=2.0.0',
        'rich>=13.0',
    ],
    extras_require={
        'mcp': [
            'mcp[cli]>=1.0.0,<2',
        ],
        'test': [
            'pytest>=7.0',
        ],
    },
    entry_points={
        'console_scripts': [
            'pay-stat=paystat.cli.__main__:main',
            'pay-stat-mcp=paystat.mcp.server:run_server',
        ],
    },
    author='Personal',
    description='Statutory payroll deductions, tax relief and income tax per pay period.',
    python_requires='>=3.10',
)
