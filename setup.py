#!/usr/bin/env python
"""Setup configuration for CarePod Governance."""

from setuptools import find_packages, setup

setup(
    name="carepod",
    version="0.1.0",
    description="Consent, access-control and audit core for per-patient health pods",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.11",
    install_requires=[
        "httpx>=0.25.0",
        "pydantic>=2.5.0",
        "pydantic-settings>=2.0.0",
        "PyLD>=2.0.3",
        "structlog>=23.2.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
        ],
    },
)
