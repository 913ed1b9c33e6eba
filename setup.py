"""Setup script for mgprecond multilevel preconditioners."""

from setuptools import setup, find_packages
from pathlib import Path

# Read README file
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text() if (this_directory / "README.md").exists() else ""

setup(
    name="mgprecond",
    version="0.3.0",
    description="Recursive multigrid preconditioners for nested finite element hierarchies",
    long_description=long_description,
    long_description_content_type="text/markdown",

    packages=find_packages(where="src"),
    package_dir={"": "src"},

    python_requires=">=3.8",
    install_requires=[
        "numpy>=1.21.0",
        "scipy>=1.9.0",
        "matplotlib>=3.5.0",
        "pyyaml>=6.0",
    ],

    extras_require={
        "test": [
            "pytest>=7.0.0",
        ],
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "black>=23.0.0",
            "flake8>=6.0.0",
            "mypy>=1.0.0",
        ],
    },

    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Science/Research",
        "Topic :: Scientific/Engineering :: Mathematics",
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],

    keywords=[
        "multigrid", "preconditioner", "finite-elements", "krylov",
        "conjugate-gradient", "numerical-methods", "linear-algebra"
    ],

    entry_points={
        "console_scripts": [
            "mgprecond-solve=mgprecond.cli:main",
        ],
    },

    zip_safe=False,
)
