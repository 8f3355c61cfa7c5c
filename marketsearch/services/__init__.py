"""Search core services"""
