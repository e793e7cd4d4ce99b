"""Command line interface for stylewatch."""
