"""Record access: constraint checks and the entity repository."""

from matte.records.constraints import check_record, check_value
from matte.records.repository import SINGLETON_ID, EntityRepository

__all__ = ["EntityRepository", "SINGLETON_ID", "check_record", "check_value"]
