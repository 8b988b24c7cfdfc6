import os

from setuptools import find_packages, setup

with open("README.md", encoding="utf-8") as fh:
    long_description = fh.read()

requirements_path = "requirements.txt"

if os.path.exists(requirements_path):
    with open(requirements_path, encoding="utf-8") as fh:
        requirements = [
            line.strip()
            for line in fh
            if line.strip() and not line.startswith("#") and not line.startswith("-r")
        ]
else:
    requirements = ["requests>=2.32.4", "PyYAML>=6.0", "rich>=13.0.0", "python-dotenv>=1.0.0"]

setup(
    name="memstack",
    version="0.1.0",
    description="Installer and lifecycle manager for local memory services (Qdrant, Ollama, memory API)",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: System :: Installation/Setup",
        "Topic :: System :: Systems Administration",
        "License :: OSI Approved :: Apache Software License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Operating System :: POSIX :: Linux",
    ],
    python_requires=">=3.10",
    install_requires=requirements,
    extras_require={
        "test": ["pytest>=7.0.0", "pytest-cov>=4.0.0"],
    },
    entry_points={
        "console_scripts": [
            "memstack=memstack.cli:main",
            "memstack-cleanup=memstack.cli:cleanup_main",
            "memstack-services=memstack.cli:services_main",
        ],
    },
    include_package_data=True,
)
