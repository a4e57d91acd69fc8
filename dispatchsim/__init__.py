"""Comparative call vs. report dispatch simulation."""
