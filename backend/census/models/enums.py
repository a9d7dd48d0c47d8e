from enum import Enum


class MaritalStatus(str, Enum):
    SINGLE = "single"
    MARRIED = "married"
    DIVORCED = "divorced"
    WIDOWED = "widowed"


class OccupationType(str, Enum):
    RETIRED = "retired"
    HOUSEWIFE = "housewife"
    SALARIED = "salaried"
    BUSINESS = "business"
    STUDENT = "student"
    UNEMPLOYED = "unemployed"


class ChildType(str, Enum):
    SON = "son"
    DAUGHTER = "daughter"
