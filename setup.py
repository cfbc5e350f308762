from setuptools import setup, find_packages

setup(
    name="shelter-severity",
    version="0.1.0",
    packages=find_packages(exclude=("tests", "tests.*", "scripts")),
    python_requires=">=3.9",
    install_requires=[
        "pydantic>=2",
        "pydantic-settings",
        "python-dotenv",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
)
