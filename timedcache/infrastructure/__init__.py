"""Infrastructure layer: concrete adapters for the domain interfaces."""
