"""
Weather gateway service package for the UK Weather API.
"""
