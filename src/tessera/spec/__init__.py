"""
Spec - the wire data model, schemas and the codec between them.

Values cross the contract boundary as constructor-tagged data: only a
constructor index and field positions survive, so every record shape is
described by a Schema registered ahead of time.
"""
