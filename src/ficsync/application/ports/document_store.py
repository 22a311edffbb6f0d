from typing import Protocol, runtime_checkable

from ...domain.models.delivery import RemoteDocument


@runtime_checkable
class DocumentStorePort(Protocol):
    """Protocol for the remote document store the reading device syncs from."""
    
    def upload(self, document_bytes: bytes, metadata: dict[str, str], access_token: str) -> str:
        """
        Upload a document package.
        
        Args:
            document_bytes: Package bytes (EPUB)
            metadata: Visible name, file type and ficsync story metadata
            access_token: Access token for the store
        
        Returns:
            Remote document identifier
        
        Raises:
            UploadTransportError: Network failure or timeout (retryable)
            RemoteQuotaExceededError: Store refuses the upload (non-retryable)
        """
        ...
    
    def delete(self, remote_id: str, access_token: str) -> None:
        """
        Delete a remote document.
        
        Raises:
            UploadTransportError: Network failure or timeout (retryable)
        """
        ...
    
    def list(self, access_token: str) -> list[RemoteDocument]:
        """
        List documents currently in the store.
        
        Raises:
            UploadTransportError: Network failure or timeout (retryable)
        """
        ...
