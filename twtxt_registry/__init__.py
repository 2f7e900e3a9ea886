"""
twtxt registry - aggregates twtxt feeds and serves searchable, paginated views of them
"""

__version__ = "0.4.0"
