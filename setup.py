"""
Setup script for vmq-engine.

VMQ is the practice engine behind the violin music-theory drills. It
serves three roles:

1. Adaptive difficulty - promotes and demotes drill tiers from recent answers
2. Mastery & review - accuracy grades plus SM-2 spaced repetition
3. Rewards - XP, streak/combo bonuses and violin levels

The 'vmq' command inspects and drives the engine from the terminal.
"""

from setuptools import find_packages, setup

setup(
    name="vmq-engine",
    version="1.0.0",
    description="Adaptive difficulty, mastery and spaced-repetition engine for violin practice drills",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    author="VMQ",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["config"],
    python_requires=">=3.11",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Database
        "sqlalchemy>=2.0.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "vmq=vmq.cli.main:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Education",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Education :: Computer Aided Instruction (CAI)",
    ],
    keywords="learning spaced-repetition adaptive-difficulty education violin",
)
