"""Rendering, session files, project loading and the desktop front end."""
