"""Setup script for cellpos package."""

from setuptools import setup, find_packages

setup(
    name="cellpos-provider",
    version="0.1.0",
    description="Cell-id position provider with offline triangulation and online fallback",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.8",
    install_requires=[
        "requests>=2.31.0",
        "python-dotenv>=1.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "cellpos-provider=cellpos.main:main",
            "cellpos-build-dataset=cellpos.dataset_builder:main",
        ],
    },
)
