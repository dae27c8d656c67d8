"""
Clipchat command-line interface
"""
