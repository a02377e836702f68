"""setuptools setup for PomoGuard.

Install for development:
    pip install -e ".[test]"
    python -m pomoguard --task "Write report"
"""

from setuptools import setup, find_packages

setup(
    name="PomoGuard",
    version="0.1.0",
    description="Crash-safe focus/break interval timer engine",
    packages=find_packages(include=["pomoguard", "pomoguard.*"]),
    python_requires=">=3.10",
    install_requires=[
        "PyQt6>=6.4",
        "SQLAlchemy>=2.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": ["pomoguard=pomoguard.__main__:main"],
    },
)
