"""Application package for the licence application admin backend.

This package exposes the schema manager, the record-access services and
the FastAPI application that serves them. Individual modules contain the
concrete implementations and documentation.
"""
