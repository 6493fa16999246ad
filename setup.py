# setup.py
from setuptools import setup, find_packages

setup(
    name="site_mirror",
    version="0.1.0",
    description="Offline website mirror: headless-browser crawl with full network capture",
    packages=find_packages(exclude=("tests", "tests.*")),
    package_data={"site_mirror": ["templates/*.j2"]},
    include_package_data=True,
    install_requires=[
        "playwright>=1.40",
        "aiohttp>=3.9",
        "pydantic>=2.5",
        "PyYAML>=6.0",
        "click>=8.1",
        "lxml>=4.9",
        "beautifulsoup4>=4.12",
        "Jinja2>=3.1",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": [
            "site-mirror=site_mirror.cli:cli",
        ],
    },
    python_requires=">=3.11",
)
