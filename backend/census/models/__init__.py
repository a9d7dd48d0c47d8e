from census.models.child import Child
from census.models.child_spouse import ChildSpouse
from census.models.enums import ChildType, MaritalStatus, OccupationType
from census.models.family_head import FamilyHead
from census.models.grandchild import Grandchild
from census.models.spouse import Spouse

__all__ = [
    "Child",
    "ChildSpouse",
    "ChildType",
    "FamilyHead",
    "Grandchild",
    "MaritalStatus",
    "OccupationType",
    "Spouse",
]
