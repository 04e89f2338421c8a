"""Client engine for the ClinicalPaws consultation service."""

__version__ = "0.1.0"
