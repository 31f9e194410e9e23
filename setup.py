"""
Setup script for lingo-progress.

lingo-progress is the learner progress and mastery engine of the
language-learning stack. It serves three roles:

1. Progress Aggregator - Folds completed lessons and assessments into a
   durable per-learner model (score, proficiency, trajectory)
2. Mastery Tracking - Per-topic and per-word mastery levels
3. Topic Selection - Ranked topics for the next generated lessons

The 'lingo' command exposes the engine from the terminal.
"""

from setuptools import find_packages, setup

setup(
    name="lingo-progress",
    version="1.0.0",
    description="Adaptive learning progress and mastery engine",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["config"],
    python_requires=">=3.11",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Database
        "sqlalchemy[asyncio]>=2.0.0",
        "asyncpg>=0.29.0",
        "aiosqlite>=0.19.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "lingo=src.cli.main:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "Intended Audience :: Education",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Education :: Computer Aided Instruction (CAI)",
    ],
    keywords="language-learning progress mastery cli education",
)
