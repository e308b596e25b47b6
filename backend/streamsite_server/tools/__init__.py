"""
Command-line tools for StreamSite operators.
"""
