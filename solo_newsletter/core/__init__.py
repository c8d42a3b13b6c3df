"""Document editing, link engine, rendering and dispatch."""
