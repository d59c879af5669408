from setuptools import find_packages, setup

setup(
    name="dynamo-crud",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "boto3>=1.26.0",
        "botocore",
        "pydantic>=2.0",
        "pydantic-settings>=2.0",
    ],
    extras_require={
        "dax": ["amazon-dax-client"],
        "test": [
            "pytest",
            "pytest-mock",
            "pytest-cov",
            "moto",
            "freezegun",
        ],
    },
)
