"""MCP server exposing WordPress sync as tools over stdio."""
