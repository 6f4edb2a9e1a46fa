"""Simulation engine packages: device model, engine loop, event bus."""
