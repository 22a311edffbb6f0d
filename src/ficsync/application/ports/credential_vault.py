from typing import Protocol, runtime_checkable


@runtime_checkable
class CredentialVaultPort(Protocol):
    """Protocol for sealing token material at rest."""
    
    def seal(self, plaintext: bytes) -> str:
        """
        Encrypt and authenticate `plaintext` under a fresh random nonce.
        
        Returns:
            Text-safe blob (nonce prepended to ciphertext)
        """
        ...
    
    def open(self, blob: str) -> bytes:
        """
        Authenticate and decrypt a sealed blob.
        
        Raises:
            DecryptionError: Blob is malformed or fails authentication
        """
        ...
