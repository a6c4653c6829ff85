from setuptools import find_packages, setup

setup(
    name="cbuild",
    version="0.1.0",
    packages=find_packages(
        include=[
            "cbuild_common",
            "cbuild_common.*",
            "cbuild_runner",
            "cbuild_runner.*",
            "cbuild_client",
            "cbuild_client.*",
        ]
    ),
    install_requires=[
        "requests>=2.31.0",
        "click>=8.1.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
            "pytest-xdist>=3.3.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "cbuild=cbuild_client.cli:main",
        ],
    },
    python_requires=">=3.11",
)
