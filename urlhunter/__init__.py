"""
urlhunter: URL-shortener dump search

A utility for finding historical URLTeam releases on the Internet
Archive, downloading and unpacking their dumps, and searching the
shortened URLs they contain for keywords or patterns.
"""

__version__ = "1.0.0"
__author__ = "urlhunter Project"
__description__ = "URL-shortener dump search"
