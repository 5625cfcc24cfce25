"""
Workbench - Configuration, logging, storage and CLI around the workflow engine.
"""
