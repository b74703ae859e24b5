"""
Nuxbe Shell: session bootstrap and deep-link routing for the Nuxbe mobile app.
"""

__version__ = '1.0.0'
