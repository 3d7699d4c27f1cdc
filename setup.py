#!/usr/bin/env python3

import os
import re

from setuptools import setup


def read(fname):
    with open(os.path.join(os.path.dirname(__file__), fname)) as f:
        return f.read()


def version():
    match = re.search(
        r"^__version__ = ['\"]([^'\"]*)['\"]", read("src/photoslibrary/__init__.py"), re.M
    )
    if not match:
        raise RuntimeError("failed to parse version")
    return match.group(1)


install_requires = [
    "httpx >= 0.24",
    "iso8601 >= 1.0",
    "multidict >= 6.0",
    "uvicorn >= 0.20",
]

extras_require = {
    "test": [
        "pytest >= 7.0",
        "pytest-asyncio >= 0.21",
    ],
}

classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "License :: OSI Approved :: Mozilla Public License 2.0 (MPL 2.0)",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Topic :: Internet :: WWW/HTTP",
    "Framework :: AsyncIO",
]

setup(
    name="photoslibrary",
    version=version(),
    description="Asynchronous client for the Google Photos Library API.",
    long_description=read("README.rst"),
    author="photoslibrary contributors",
    license="Mozilla Public License 2.0",
    project_urls={
        "API reference": "https://developers.google.com/photos/library/reference/rest",
    },
    classifiers=classifiers,
    packages=["photoslibrary"],
    package_dir={"": "src"},
    python_requires=">= 3.10",
    install_requires=install_requires,
    extras_require=extras_require,
    keywords="google photos library api client pagination asyncio",
)
