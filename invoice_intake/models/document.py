from typing import List, Optional
from pydantic import BaseModel, Field


class DocumentEntity(BaseModel):
    """A typed span returned by the document-understanding processor."""
    type: str = ""
    mention_text: str = ""
    properties: List["DocumentEntity"] = Field(default_factory=list)

    def property_text(self, *types: str) -> Optional[str]:
        """Mention text of the first property matching any of `types`, in the order given."""
        for prop_type in types:
            for prop in self.properties:
                if prop.type == prop_type:
                    return prop.mention_text
        return None


class ProcessedDocument(BaseModel):
    """Full text plus entities of one processed PDF."""
    text: str = ""
    entities: List[DocumentEntity] = Field(default_factory=list)
