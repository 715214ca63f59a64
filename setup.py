from setuptools import setup, find_packages

setup(
    name="explainrelay",
    version="0.1.0",
    packages=find_packages(include=["relay", "relay.*"]),
    python_requires=">=3.11",
    install_requires=[
        "fastapi>=0.110",
        "starlette",
        "pydantic>=2.5",
        "pydantic-settings>=2.3",
        "httpx>=0.27",
        "uvicorn[standard]",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
            "respx",
        ],
    },
)
