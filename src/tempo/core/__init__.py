"""Core infrastructure shared by Tempo components."""
