"""
Main Pipeline Module.

Orchestrates the complete background removal pipeline.
"""

from .orchestrator import BackgroundRemovalPipeline, advance, fail
