"""
MCP relay protocol layer: HTTP client, schema normalization, handlers,
background refresh and the stdio server.
"""
