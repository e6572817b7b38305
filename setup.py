from setuptools import setup, find_packages
import os
import re

# Read version from __init__.py without importing the package
with open("auth_migrator/__init__.py", "r", encoding="utf-8") as f:
    version_match = re.search(r'__version__\s*=\s*[\'"]([^\'"]*)[\'"]', f.read())
    version = version_match.group(1) if version_match else "0.1.0"

# Read long description from README.md
with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

# Read requirements from requirements.txt
with open("requirements.txt", "r", encoding="utf-8") as f:
    requirements = [line.strip() for line in f if line.strip() and not line.startswith("#") and not line.startswith("# ")]

setup(
    name="synapse-auth-migrator",
    version=version,
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=requirements,
    extras_require={
        "postgres": ["psycopg2-binary>=2.9"],
        "test": ["pytest>=7.0"],
    },
    entry_points={
        'console_scripts': [
            'auth-migrator=auth_migrator.__main__:main',
        ],
    },
    description="One-shot migration of Synapse accounts and sessions into Matrix Authentication Service",
    long_description=long_description,
    long_description_content_type="text/markdown",
    keywords="matrix, synapse, authentication, migration, database",
    python_requires=">=3.9",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: System Administrators",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Database",
    ],
    include_package_data=True,
    package_data={
        "auth_migrator": ["py.typed"],
    },
)
