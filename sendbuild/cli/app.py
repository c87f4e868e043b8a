"""
Main CLI application for SendBuild.

Defines the Typer application structure and command routing; commands stay
thin and delegate to the service layer.
"""
import typer

from sendbuild import __version__
from sendbuild.cli.commands.upload import upload_command


# Initialize Typer app
app = typer.Typer(help="SendBuild - upload mobile builds to Data Theorem")

# Register commands
app.command("upload", help="Upload a build to the Data Theorem Upload API.")(upload_command)


@app.command("version")
def version_command():
    """Show the SendBuild version."""
    typer.echo(__version__)
