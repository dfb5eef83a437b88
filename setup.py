"""Setup configuration for projlens."""

from setuptools import setup, find_packages

setup(
    name="projlens",
    version="0.1.0",
    description="Background process for the projlens project explorer",
    python_requires=">=3.11",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    install_requires=[
        "websockets>=13.0",
        "PyYAML>=6.0",
        "rich>=13.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "projlens=projlens.app:main",
        ],
    },
)
