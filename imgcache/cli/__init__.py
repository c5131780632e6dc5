"""
Command-line interface for priming, inspecting and clearing the image cache.
"""
