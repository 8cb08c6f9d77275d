"""Setup script for webview_query Python package."""

from setuptools import setup, find_packages

setup(
    name="webview-query",
    version="0.1.0",
    description="Collect Telegram web app auth queries from bot sessions",
    author="Your Name",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.8",
    install_requires=[
        "telethon>=1.34",
        "PyYAML>=6.0",
        "python-dotenv>=1.0",
    ],
    extras_require={
        "dev": ["pytest", "pytest-asyncio", "black", "mypy"],
    },
    entry_points={
        "console_scripts": [
            "webview-query=webview_query.runner:main",
        ],
    },
)
