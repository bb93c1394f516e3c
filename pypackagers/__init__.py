"""Build-plan data model, logging, SBOM generation and a conda environment packager."""

__version__ = "0.1.0"