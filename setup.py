from setuptools import setup, find_packages

setup(
    name="qengine",
    version="0.1.0",
    packages=find_packages(exclude=["qengine.tests", "qengine.tests.*"]),
    install_requires=[
        "pydantic>=2.0.0",
        "sqlalchemy>=2.0.0",
        "alembic>=1.7.0",
        "python-dotenv>=0.19.0",
        "pyyaml>=5.4",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
        ],
    },
    python_requires=">=3.8",
)
