"""CivicTrack HTTP API"""
