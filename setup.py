"""
Replays domain registry contract events into a queryable name registry
"""

from setuptools import find_packages, setup

with open("README.md", encoding="utf-8") as f:
    long_description = f.read()

with open("requirements.txt", encoding="utf-8") as f:
    requirements = [
        line.strip() for line in f if line.strip() and not line.startswith("#")
    ]

setup(
    name="domain-indexer",
    version="0.1.0",
    description="Replays domain registry contract events into a queryable name registry",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["docs"]),
    package_data={
        "domain_indexer": ["abi/*.json"],
    },
    install_requires=requirements,
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "domain-indexer=domain_indexer.__main__:main",
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.9",
)
