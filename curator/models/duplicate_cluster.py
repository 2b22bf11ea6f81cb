from dataclasses import dataclass


@dataclass(frozen=True)
class DuplicateCluster:
    # Members in canonical order: the first id is always the canonical one.
    member_ids: tuple[int, ...]

    def __post_init__(self):
        if not self.member_ids:
            raise ValueError("DuplicateCluster needs at least one member")
        if len(set(self.member_ids)) != len(self.member_ids):
            raise ValueError(f"DuplicateCluster has repeated members: {self.member_ids}")

    @property
    def canonical_id(self) -> int:
        return self.member_ids[0]

    @property
    def duplicate_ids(self) -> tuple[int, ...]:
        return self.member_ids[1:]

    def __len__(self) -> int:
        return len(self.member_ids)
