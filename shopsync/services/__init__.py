"""Ingestion, tenant and insights services."""
