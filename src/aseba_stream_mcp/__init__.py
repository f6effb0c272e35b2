"""Client transport and MCP server for Aseba/Dashel length-prefixed streams."""

__version__ = "0.1.0"
