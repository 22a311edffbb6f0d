from typing import Protocol, runtime_checkable

from ...domain.models.document import Document


@runtime_checkable
class DocumentPackagerPort(Protocol):
    def package(self, document: Document) -> bytes:
        """
        Render a document into a portable e-book package.
        
        Must be deterministic: the same chapters, metadata and `built_at`
        always produce byte-identical output.
        
        Args:
            document: Document whose `package` field is not yet populated
        
        Returns:
            Package bytes
        """
        ...
