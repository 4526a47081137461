"""
HTTP surface for the inspection report engine.
"""
