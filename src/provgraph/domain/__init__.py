"""Application providers built on the provgraph engine.

Each module defines its repository dependency, the providers reading from
it, and a Management command object whose mutations invalidate them.
"""
