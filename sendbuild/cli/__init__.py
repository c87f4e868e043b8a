"""
CLI module for SendBuild.

Provides the command-line host integration for the upload workflow.
"""
from sendbuild.cli.app import app as _app

# Export app function for pyproject.toml entry point
def app():
    """Entry point function for pyproject.toml scripts."""
    _app()

__all__ = ['app']
