from setuptools import setup, find_packages

setup(
    name="pocket-app-rotator",
    version="1.0.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "typer>=0.9.0",
        "rich>=13.0.0",
        "pyyaml>=6.0.0",
        "pynacl>=1.5.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "approtator=approtator.__main__:main",
        ],
    },
)
