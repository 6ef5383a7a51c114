"""
Collaborators injected at the boundary: key-value storage, location and
navigation, fetch transport, and selection persistence.
"""
