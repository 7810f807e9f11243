"""
TaskRank setup.py — Package configuration.
"""

from setuptools import find_packages, setup

setup(
    name="taskrank",
    version="1.0.0",
    description="TaskRank — priority scoring and lifecycle engine for personal task managers",
    packages=find_packages(include=["taskrank", "taskrank.*"]),
    python_requires=">=3.11",
    install_requires=[
        "sqlalchemy>=2.0",
        "psycopg2-binary>=2.9",
        "pydantic>=2.5",
        "redis>=5.0",
        "celery[redis]>=5.3",
        "pyyaml>=6.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
        ],
    },
)
