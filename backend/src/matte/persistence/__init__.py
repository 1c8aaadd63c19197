"""Persistence layer - storage adapters and configuration."""

from matte.persistence.adapter import StorageAdapter
from matte.persistence.config import DatabaseConfig, create_adapter

__all__ = ["StorageAdapter", "DatabaseConfig", "create_adapter"]
