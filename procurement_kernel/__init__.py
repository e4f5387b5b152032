"""
Procurement kernel: infrastructure shared by every procurement module.

Exceptions, structured logging, database bases and engine, domain
primitives (clock, decimals, state machines, capabilities), the users
table, and document numbering / notification services.
"""
