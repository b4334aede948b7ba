"""
bcscope: Bugcrowd program discovery and scope extraction.
"""

__version__ = "1.0.0"
