"""
Clipchat HTTP API
"""
