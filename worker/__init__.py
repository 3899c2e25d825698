"""
Listing worker runtime: configuration, logging, persistence and the poll loop.
"""
