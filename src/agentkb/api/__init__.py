"""FastAPI application exposing the knowledge core to the dashboard."""
