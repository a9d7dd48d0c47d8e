from pydantic import BaseModel, Field, computed_field


class ExportRequest(BaseModel):
    password: str = Field(min_length=1, max_length=120)


class FamilyStats(BaseModel):
    total_families: int = 0
    total_family_heads: int = 0
    total_spouses: int = 0
    total_children: int = 0
    total_sons: int = 0
    total_daughters: int = 0
    married_children: int = 0
    total_child_spouses: int = 0
    total_grandchildren: int = 0
    occupation_breakdown: dict[str, int] = Field(default_factory=dict)
    age_groups: dict[str, int] = Field(default_factory=dict)

    @computed_field
    @property
    def total_members(self) -> int:
        return (
            self.total_family_heads
            + self.total_spouses
            + self.total_children
            + self.total_child_spouses
            + self.total_grandchildren
        )
