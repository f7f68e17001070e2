from setuptools import setup, find_packages

setup(
    name="flowtree",
    version="0.1.0",
    packages=find_packages(include=["flowtree", "flowtree.*"]),
    py_modules=["flow"],
    package_data={"flowtree": ["grammar.lark"]},
    install_requires=[
        "lark",
        "pydantic>=2.0",
        "networkx>=3.0",
        "loguru>=0.7",
        "opentelemetry-api",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "flowtree=flow:main",
        ],
    },
    python_requires=">=3.10",
)
