from setuptools import setup, find_packages

setup(
    name="trustbadge",
    version="0.1.0",
    description="Signed, time-limited trust badges from verified identity anchors",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    package_data={"trustbadge": ["migrations/*.sql"]},
    install_requires=[
        "pynacl>=1.5.0",
        "httpx>=0.25",
        "fastapi>=0.110",
        "pydantic>=2.0",
        "slowapi>=0.1.9",
        "python-json-logger>=3.1",
        "asyncpg>=0.29",
        "uvicorn>=0.27",
    ],
    extras_require={"dev": ["pytest>=7.0", "pytest-asyncio>=0.23", "respx>=0.21", "limits>=3.0"]},
    entry_points={"console_scripts": ["trustbadge=trustbadge.cli:main"]},
    python_requires=">=3.10",
    license="CC0-1.0",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Security :: Cryptography",
        "Topic :: Software Development :: Libraries",
        "License :: CC0 1.0 Universal (CC0 1.0) Public Domain Dedication",
        "Programming Language :: Python :: 3",
    ],
    keywords="trust badge verification ed25519 identity",
)
