"""
Generation services for tutorgen

Submodules are imported directly (tutorgen.services.orchestrator, ...);
the LLM adapters depend on tutorgen.services.costs, so this package
does not import its submodules eagerly.
"""
