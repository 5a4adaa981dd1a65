from setuptools import setup, find_packages

setup(
    name="kaleido-lang",
    version="0.3.0",
    description="Kaleido — toy expression language front end with an LLVM backend",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "llvmlite>=0.41.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "hypothesis>=6.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "kaleido=kaleido.cli:main",
        ],
    },
)
