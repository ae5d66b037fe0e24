"""
Roaming settings kept in a Microsoft Graph user open extension.
"""
