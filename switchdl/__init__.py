"""
switchdl: catalogs Switch titles (base games, DLC, updates) and orchestrates
downloading and repacking them.
"""

__version__ = "0.3.0"
