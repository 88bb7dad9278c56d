from setuptools import setup
import os
import re

# Version lives in services/__init__.py
def get_version(package):
    """Return package version as listed in `__version__` in `<package>/__init__.py`."""
    init_py_path = os.path.join(os.path.dirname(__file__), package, '__init__.py')
    if not os.path.exists(init_py_path):
        raise RuntimeError(f"Unable to find __init__.py in {package}.")

    with open(init_py_path, 'r', encoding='utf-8') as f:
        init_py = f.read()

    match = re.search("__version__ = ['\"]([^'\"]+)['\"]", init_py)
    if match:
        return match.group(1)
    raise RuntimeError(f"Unable to find __version__ string in {init_py_path}")

version = get_version('services')

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

with open("requirements.txt", "r", encoding="utf-8") as f:
    requirements = [line for line in f.read().splitlines() if line and not line.startswith("#")]

setup(
    name="tubecache",
    version=version,
    description="Cached YouTube Data API client: keyword search, channel uploads and video lookups",
    long_description=long_description,
    long_description_content_type="text/markdown",
    # Flat layout: shared modules at the root, service and CLI code in packages
    py_modules=["cache", "config", "exceptions", "logging_config", "models", "utils"],
    packages=["services", "cli"],
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.8",
    install_requires=requirements,
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "tubecache=cli.tubecache_cli:main",
        ],
    },
)
