from setuptools import setup, find_packages

setup(
    name="lingoguard",
    version="1.0.0",
    packages=find_packages(include=["lingoguard", "lingoguard.*"]),
    python_requires=">=3.11",
    install_requires=[
        "fastapi",
        "starlette",
        "pydantic",
        "pydantic-settings",
        "cryptography",
        "httpx",
        "bcrypt",
        "PyJWT",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
        ],
        "server": [
            "uvicorn",
        ],
    },
)
