"""Product Requirements MCP Server.

Manages a requirements hierarchy (epics, user stories, acceptance criteria,
requirements) and exposes it over the Model Context Protocol.
"""

__version__ = "1.0.0"
