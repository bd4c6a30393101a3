"""Shared configuration, errors, logging, metrics and data model."""
