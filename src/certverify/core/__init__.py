"""Domain primitives: enums, errors and the crypto verifier."""
