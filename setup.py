#!/usr/bin/python
# -*- encoding: utf-8 -*-
import ast
import re
import sys

from setuptools import find_packages
from setuptools import setup

## The version number is maintained in mserver/__init__.py only
_version_re = re.compile(r"__version__\s+=\s+(.*)")
with open("mserver/__init__.py", "rb") as f:
    version = str(
        ast.literal_eval(_version_re.search(f.read().decode("utf-8")).group(1))
    )

if __name__ == "__main__":
    test_packages = [
        "pytest",
        "pytest-coverage",
        "coverage",
        "pyyaml",
    ]

    setup(
        name="python-mserver",
        version=version,
        description="Client library for the Stormware POHODA mServer XML interface",
        long_description=open("README.md").read(),
        long_description_content_type="text/markdown",
        classifiers=[
            "Development Status :: 4 - Beta",
            "Intended Audience :: Developers",
            "License :: OSI Approved :: Apache Software License",
            "Operating System :: OS Independent",
            "Programming Language :: Python",
            "Programming Language :: Python :: 3",
            "Topic :: Office/Business :: Financial :: Accounting",
            "Topic :: Software Development :: Libraries " ":: Python Modules",
        ],
        keywords="pohoda mserver stormware accounting xml",
        license="Apache-2.0",
        packages=find_packages(exclude=["tests"]),
        include_package_data=True,
        zip_safe=False,
        python_requires=">=3.8",
        install_requires=[
            "lxml",
            "requests",
            "typing_extensions;python_version<'3.11'",
        ],
        extras_require={
            "test": test_packages,
            "yaml": ["pyyaml"],
        },
    )
