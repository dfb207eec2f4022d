"""
Room Stage

AI room-staging pipeline: normalize a room photo, mask the floor area, render
furniture through external image providers and persist the validated result.
- config: style tables
- core: settings, logging, errors, retry
- schemas: request, response and plan models
- services: pipeline stages and the staging entry point
"""

__version__ = "1.0.0"
