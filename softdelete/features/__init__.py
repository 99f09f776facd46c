"""Repository features package"""

from softdelete.features.base_feature import RepositoryFeature
from softdelete.features.soft_delete_feature import SoftDeleteFeature

__all__ = ["RepositoryFeature", "SoftDeleteFeature"]
