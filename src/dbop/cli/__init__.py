"""dbop command line interface."""
