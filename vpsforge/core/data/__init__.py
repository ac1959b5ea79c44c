"""
Built-in module registry and the trusted checksum table.
"""
