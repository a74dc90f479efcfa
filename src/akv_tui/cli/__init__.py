"""akv command line interface."""
