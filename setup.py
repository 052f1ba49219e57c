from setuptools import setup, find_packages

setup(
    name="ruleset_promoter",
    version="1.0.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    include_package_data=True,
    install_requires=[
        "click",
        "InquirerPy",
        "PyYAML",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "promoter=promoter.cli:main",  # path to main() inside promoter/cli.py
        ],
    },
    author="Leonardo Campos",
    description="Ruleset promoter - moves ruleset values through the QA, Stage and Production values files",
    python_requires=">=3.9",
)
