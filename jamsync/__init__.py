"""
jamsync - leader-driven synchronized audio playback rooms
"""
