"""Command-line entry points for CivicTrack"""
