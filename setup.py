"""Setup script for cytof_fr package."""

from setuptools import setup, find_packages

setup(
    name="cytof_fr",
    version="1.0.0",
    description="Partition-based featurization and Friedman-Rafsky testing for CyTOF samples",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    python_requires=">=3.9",
    install_requires=[
        "numpy>=1.20",
        "pandas>=1.3",
        "scipy>=1.7",
        "scikit-learn>=1.0",
        "igraph>=0.10",
        "pyyaml>=5.4",
        "click>=8.0",
        "joblib>=1.3",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0",
            "pytest-cov>=4.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "cytof-fr=cytof_fr.cli.main:cli",
        ],
    },
)
