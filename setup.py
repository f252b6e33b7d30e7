# setup.py
from setuptools import setup, find_packages

setup(
    name="ssl_migrate",
    version="0.1.0",
    description="Перевод сайтов WordPress multisite на HTTPS и отчёт о запароленных сайтах",
    packages=find_packages(exclude=("tests", "tests.*")),
    package_data={"ssl_migrate": ["templates/*.j2"]},
    install_requires=[
        "click>=8.1",
        "pydantic>=2.5",
        "PyYAML>=6.0",
        "Jinja2>=3.1",
        "PyMySQL>=1.1",
    ],
    extras_require={
        "test": ["pytest>=7.4"],
    },
    entry_points={
        "console_scripts": ["ssl-migrate=ssl_migrate.cli:cli"],
    },
    python_requires=">=3.11",
)
