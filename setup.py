"""Build sketchwire package."""
import setuptools

with open("README.md") as f:
    long_desc = f.read()

setuptools.setup(
    name="sketchwire",
    version="0.1.0",
    description=(
        "Client for server-side Bloom, Cuckoo, Count-Min-Sketch, Top-K "
        "and T-Digest commands"
    ),
    long_description=long_desc,
    long_description_content_type="text/markdown",
    packages=setuptools.find_packages(include=["sketchwire", "sketchwire.*"]),
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: Apache Software License",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.8",
    install_requires=[
        "click",
        "pydantic>=2",
        "redis>=4.3",
        "tomli ; python_version<'3.11'",
        "tomli-w",
        "typing-extensions>=4.3.0 ; python_version<'3.11'",
    ],
    extras_require={
        "dev": [
            "coverage",
            "pytest",
            "pytest-cov",
        ],
    },
    entry_points={
        "console_scripts": [
            "sketchwire = sketchwire.cli:cli",
        ],
    },
)
