"""relquery command-line interface."""
