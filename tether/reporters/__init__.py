"""Reporters - Flight records and replay."""
