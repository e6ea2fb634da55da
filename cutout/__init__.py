"""
Cutout Studio: background removal with pluggable segmentation strategies.
"""
__version__ = "1.0.0"
