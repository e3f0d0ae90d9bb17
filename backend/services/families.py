"""
Document family grouping.

A family is a root document (parent_id NULL, family_id == id) and every
document created from it by container expansion, ordered by family_index.
All family reads go through the two functions below.
"""
from collections import defaultdict
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from models.document import Document


@dataclass
class FamilyGroup:
    root: Document
    children: List[Document] = field(default_factory=list)


def get_family_group(db: Session, document_id: str) -> Optional[FamilyGroup]:
    """Return the family containing document_id (which may be the root or a child)."""
    doc = db.get(Document, document_id)
    if doc is None:
        return None
    groups = group_families(db, [doc.family_id])
    if groups:
        return groups[0]
    # Orphaned child whose root no longer exists
    return FamilyGroup(root=doc, children=[])


def group_families(db: Session, family_ids: Sequence[str]) -> List[FamilyGroup]:
    """Load whole families in one query, returned in the order of family_ids."""
    if not family_ids:
        return []
    members = (
        db.query(Document)
        .filter(Document.family_id.in_(list(family_ids)))
        .order_by(Document.family_index, Document.created_at, Document.id)
        .all()
    )
    roots = {}
    children = defaultdict(list)
    for m in members:
        if m.parent_id is None:
            roots[m.family_id] = m
        else:
            children[m.family_id].append(m)

    return [
        FamilyGroup(root=roots[fid], children=children[fid])
        for fid in dict.fromkeys(family_ids)
        if fid in roots
    ]
