from dataclasses import dataclass


@dataclass(frozen=True)
class AssemblyPolicy:
    """Policy for turning fetched chapters into a document."""
    
    allow_partial: bool = True
    language: str = "en"
    generator: str = "ficsync"
    
    def __post_init__(self) -> None:
        """Validate assembly policy."""
        if not self.language:
            raise ValueError("language must be non-empty")
