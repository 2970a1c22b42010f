#!/usr/bin/env python3
"""Setup script for electrolux2mqtt."""
from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="electrolux2mqtt",
    version="0.1.0",
    author="",
    author_email="",
    description="Publish Electrolux appliance state to MQTT with Home Assistant discovery",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: End Users/Desktop",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Home Automation",
    ],
    keywords="electrolux aeg appliances mqtt home-assistant home-automation",
    install_requires=[
        "paho-mqtt>=2.0",
        "pyyaml>=6.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "electrolux2mqtt=electrolux2mqtt.__main__:main",
        ],
    },
    python_requires=">=3.9",
)
