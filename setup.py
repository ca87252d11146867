from setuptools import setup, find_packages

setup(
    name="distlimit",
    version="0.1.0",
    packages=find_packages(include=["distlimit", "distlimit.*"]),
    python_requires=">=3.11",
    install_requires=[
        "redis>=5.0",
        "pydantic>=2.0",
        "pydantic-settings>=2.0",
    ],
    extras_require={
        "fastapi": ["fastapi"],
        "test": [
            "pytest",
            "pytest-asyncio",
            "fakeredis[lua]>=2.20",
            "fastapi",
            "httpx",
        ],
    },
)
