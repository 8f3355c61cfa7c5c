"""HTTP API for marketplace search"""
