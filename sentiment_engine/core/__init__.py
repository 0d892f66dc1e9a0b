"""
Classification Core

Fixed-point arithmetic, co-occurrence tracking, similarity, domain
modelling, per-caller adaptation and the orchestrator that ties them
together. Submodules are imported directly; this package re-exports
nothing so that the state module can depend on the leaf components
without an import cycle through the orchestrator.
"""
