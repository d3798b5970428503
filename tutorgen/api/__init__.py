"""
HTTP API for tutorgen
"""
