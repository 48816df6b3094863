"""
waybackdl: Wayback Machine Site Downloader

Reconstructs a historical snapshot of a website from the Internet Archive's
Wayback Machine, laying every archived resource out on disk under
<output>/<host>/<timestamp>/<path>.
"""

__version__ = "1.0"
__author__ = "waybackdl Project"
__description__ = "Wayback Machine Site Downloader"
