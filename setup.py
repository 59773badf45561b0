"""Build Syrja package."""
import setuptools

with open("README.md") as f:
    long_desc = f.read()

setuptools.setup(
    name="syrja",
    version="0.1.0",
    author="Syrja Developers",
    description="Presence registry and signaling relay for peer connections",
    long_description=long_desc,
    long_description_content_type="text/markdown",
    packages=setuptools.find_packages(include=["syrja", "syrja.*"]),
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: Apache Software License",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.10",
    install_requires=[
        "aiosqlite>=0.17.0",
        "click",
        "pydantic>=2",
        "quart>=0.19",
        "tomli ; python_version<'3.11'",
        "typing-extensions>=4.3.0 ; python_version<'3.11'",
        "uvicorn>=0.29",
        "websockets>=13.0",
    ],
    extras_require={
        "dev": [
            "pytest",
            "pytest-asyncio>=0.23",
            "pytest-timeout",
            "requests",
        ],
    },
    entry_points={
        "console_scripts": [
            "syrja-relay=syrja.relay.run:cli",
        ],
    },
)
