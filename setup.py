"""
Setup script for the Severity RNA-seq Analysis package.
"""

from setuptools import setup, find_packages

# Read README file
with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

# Read requirements
with open("requirements.txt", "r", encoding="utf-8") as fh:
    requirements = [line.strip() for line in fh if line.strip() and not line.startswith("#")]

setup(
    name="severity-rnaseq-analysis",
    version="0.1.0",
    author="Severity RNA-seq Analysis Team",
    description="Normalization, regulator activity and severity-trend statistics for RNA-seq cohorts",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["severity_rnaseq", "severity_rnaseq.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Science/Research",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Scientific/Engineering :: Bio-Informatics",
        "Topic :: Scientific/Engineering :: Medical Science Apps.",
    ],
    python_requires=">=3.10",
    install_requires=requirements,
    extras_require={
        "test": ["pytest>=7.0"],
    },
    keywords="bioinformatics, RNA-seq, TMM, voom, VIPER, transcription factor activity, severity",
)
