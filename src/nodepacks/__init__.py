"""
Node packs bundled with the workbench.
"""
