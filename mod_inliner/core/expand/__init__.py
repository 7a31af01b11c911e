"""Module expansion engine.

Turns a crate root with `mod name;` declarations into one tree of inline
modules. File loading and cfg answers come from a Resolver so the engine can
run against the filesystem or an in-memory set of sources.
"""
