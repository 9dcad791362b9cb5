"""Command line front end for drillcore."""
