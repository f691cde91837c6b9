"""Release deployment query engine.

Reads tagged ``release.yaml`` artifacts from blob storage and rebuilds
structured deployment records from them.
"""

__version__ = "0.1.0"
