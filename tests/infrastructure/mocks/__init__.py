"""Mock collaborators for chain-mesh tests."""
