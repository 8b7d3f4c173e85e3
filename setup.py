from setuptools import setup, find_packages

setup(
    name="o11y-workflows",
    version="0.1.0",
    description="Sequential observability workflow engine with MCP tools",
    author="O11y Team",
    packages=find_packages(include=["config*", "o11y_mcp*", "plugins*"]),
    install_requires=[
        "pydantic>=2.0.0",
        "PyYAML>=6.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
        ],
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "black>=22.0.0",
            "isort>=5.0.0",
        ],
    },
    python_requires=">=3.8",
)
