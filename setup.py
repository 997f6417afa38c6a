"""Setup script for mintbot."""

from setuptools import find_packages, setup

setup(
    name="mintbot",
    version="1.0.0",
    description="Submit payable contract calls with gas escalation and retries",
    packages=find_packages(exclude=("tests", "tests.*")),
    python_requires=">=3.10",
    install_requires=[
        "click>=8.1.7",
        "rich>=13.7.0",
        "requests>=2.31.0",
        "python-dotenv>=1.0.0",
        "structlog>=24.1.0",
        "pyyaml>=6.0.1",
        "pydantic>=2.5.0",
        "pydantic-settings>=2.2.0",
        "tenacity>=8.2.3",
        "prometheus-client>=0.19.0",
        "web3>=6.15.0",
        "eth-account>=0.10.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "mintbot=mintbot.cli.main:main",
        ],
    },
)
