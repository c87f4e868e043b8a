"""
SendBuild - Data Theorem build upload client.

Uploads mobile application builds to the Data Theorem Upload API using the
two-phase upload_init / upload workflow.
"""

__version__ = "2.2.0"
