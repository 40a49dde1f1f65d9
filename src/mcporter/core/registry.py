"""
Definition registry.

Holds the named server definitions known to a runtime. Definitions are
immutable; registering with ``overwrite=True`` swaps the whole entry.
"""

from typing import Dict, Iterable, List, Optional

from mcporter.core.exceptions import DuplicateDefinitionError, UnknownServerError
from mcporter.core.models import HttpCommand, ServerDefinition, SseCommand


class DefinitionRegistry:
    """Name-keyed collection of server definitions."""
    
    def __init__(self, definitions: Optional[Iterable[ServerDefinition]] = None):
        self._definitions: Dict[str, ServerDefinition] = {}
        for definition in definitions or []:
            self.register(definition, overwrite=True)
            
    def __contains__(self, name: object) -> bool:
        return name in self._definitions
    
    def __len__(self) -> int:
        return len(self._definitions)
    
    def register(self, definition: ServerDefinition, overwrite: bool = False) -> None:
        """
        Register a definition.
        
        Args:
            definition: Definition to add
            overwrite: Replace any existing definition with the same name
            
        Raises:
            DuplicateDefinitionError: If the name exists and overwrite is False
        """
        if definition.name in self._definitions and not overwrite:
            raise DuplicateDefinitionError(definition.name)
        self._definitions[definition.name] = definition
        
    def resolve_by_name(self, name: str) -> ServerDefinition:
        """
        Look up a definition by name.
        
        Raises:
            UnknownServerError: If no definition has that name
        """
        try:
            return self._definitions[name]
        except KeyError:
            raise UnknownServerError(name) from None
        
    def resolve_by_url(self, url: str) -> Optional[str]:
        """Return the name of the http/sse definition with exactly this URL."""
        return find_server_by_http_url(self._definitions.values(), url)
    
    def names(self) -> List[str]:
        return list(self._definitions)
    
    def definitions(self) -> List[ServerDefinition]:
        return list(self._definitions.values())


def find_server_by_http_url(
    definitions: Iterable[ServerDefinition], url: str
) -> Optional[str]:
    """Find the definition whose http/sse URL matches ``url`` exactly."""
    for definition in definitions:
        command = definition.command
        if isinstance(command, (HttpCommand, SseCommand)) and command.url == url:
            return definition.name
    return None
